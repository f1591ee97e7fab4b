# -*- coding: utf-8 -*-
"""Relays wired directly to the GPIO pins of the board.

Can be used on an Orange Pi (OPi.GPIO with the SUNXI pin names,
e.g. PA9) or a regular Raspberry Pi (RPi.GPIO with the BCM numbering).
Pins come from the [GPIO drv] section of the config file; without
any configured pin the family is simply not available.
"""
import logging

from . import (RelayCard, RelayCardType, RelayState, DeviceHandle,
               DeviceAccessDenied, TransportError)

LOG = logging.getLogger('relaycardd.cards.gpio')
PORT = 'gpio'
NO_SERIAL = ''


def load_gpio():
    """Import and set up the GPIO library for this board."""
    try:
        # use SUNXI as it gives the most predictable results
        from OPi import GPIO
        GPIO.setmode(GPIO.SUNXI)
        LOG.info('Using OPi.GPIO on an Orange Pi with the SUNXI numbering.')
    except ImportError:
        # maybe we're using Raspberry Pi?
        # use BCM as it is the most conventional scheme here
        from RPi import GPIO
        GPIO.setmode(GPIO.BCM)
        LOG.info('Using RPi.GPIO on a Raspberry Pi with the BCM numbering.')
    return GPIO


class GpioCard(RelayCard):
    """Up to 8 relays on configured GPIO output pins"""
    card_type = RelayCardType.GENERIC_GPIO

    def __init__(self, settings, gpio=None):
        super().__init__(settings)
        self.gpio = gpio
        self.ready = False

    @property
    def pins(self):
        """Configured pins for relay 1, 2, ... up to the first gap"""
        pins = []
        for pin in self.settings.gpio_pins:
            if pin is None:
                break
            pins.append(pin)
        return pins

    @property
    def relay_limit(self):
        return self.settings.gpio_num_relays

    def active(self, state):
        """Pin level for a relay state, honoring the active_value polarity"""
        active_value = self.settings.gpio_active_value
        return active_value if state == RelayState.ON else 1 - active_value

    def setup(self):
        """Load the GPIO library and make the relay pins outputs, once"""
        if self.ready:
            return
        if self.gpio is None:
            try:
                self.gpio = load_gpio()
            except (ImportError, RuntimeError) as exc:
                raise TransportError(f'no GPIO support: {exc}') from exc
        self.gpio.setwarnings(False)
        try:
            for pin in self.pins:
                self.gpio.setup(pin, self.gpio.OUT)
        except PermissionError as exc:
            raise DeviceAccessDenied(f'no permission to use GPIO: {exc}') from exc
        except (OSError, RuntimeError, ValueError) as exc:
            raise TransportError(f'GPIO setup failed: {exc}') from exc
        self.ready = True

    def candidates(self):
        if self.pins:
            yield PORT, NO_SERIAL

    def probe(self, port):
        self.setup()
        return DeviceHandle(self.card_type, port, len(self.pins), NO_SERIAL)

    def get_relay(self, handle, relay):
        self.setup()
        try:
            level = self.gpio.input(self.pins[relay - 1])
        except (OSError, RuntimeError) as exc:
            raise TransportError(f'GPIO read failed: {exc}') from exc
        on_level = self.active(RelayState.ON)
        return RelayState.ON if int(level) == on_level else RelayState.OFF

    def set_relay(self, handle, relay, state):
        self.setup()
        try:
            self.gpio.output(self.pins[relay - 1], self.active(state))
        except (OSError, RuntimeError) as exc:
            raise TransportError(f'GPIO write failed: {exc}') from exc
