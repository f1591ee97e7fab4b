# -*- coding: utf-8 -*-
"""Relay card dispatch and relay control for relaycard.

The Dispatcher finds a relay card by trying every supported family in
a fixed priority order (see DRIVERS); the RelayEngine reads, switches
and pulses single relays on the device it found, whichever family
it belongs to.
"""
import logging
import threading
import time

from .cards import (MAX_RELAYS, FIRST_RELAY, RelayState, RelayCardError,
                    NoDeviceFound, DeviceAccessDenied, TransportError,
                    InvalidInput, RelayOutOfRange, worst_failure)
from .cards.conrad import ConradCard
from .cards.sainsmart import SainsmartCard
from .cards.hidrelay import HidRelayCard
from .cards.gpio import GpioCard

LOG = logging.getLogger('relaycardd.driver')

# detection priority: the first family with a matching device wins
DRIVERS = (ConradCard, SainsmartCard, HidRelayCard, GpioCard)


class Dispatcher:
    """Finds relay cards among all supported families."""
    def __init__(self, settings, cards=None):
        self.settings = settings
        if cards is None:
            cards = [driver(settings) for driver in DRIVERS]
        self.cards = list(cards)

    def card(self, card_type):
        """Driver for a relay card family"""
        for card in self.cards:
            if card.card_type == card_type:
                return card
        raise NoDeviceFound(f'no driver for card type {card_type!r}')

    def detect_one(self, serial_number=None):
        """Find the first relay card, in driver priority order.
        If serial_number is given, only a card with exactly this
        serial number will do.
        Returns a DeviceHandle; raises NoDeviceFound, DeviceAccessDenied
        or TransportError."""
        failure = None
        for card in self.cards:
            try:
                handle = card.detect(serial_number)
            except NoDeviceFound:
                continue
            except (DeviceAccessDenied, TransportError) as exc:
                failure = worst_failure(failure, exc)
                continue
            LOG.debug('Detected %s on %s (serial %s)',
                      card.name, handle.port, handle.serial or 'n/a')
            return handle
        if failure is not None:
            raise failure
        if serial_number is not None:
            raise NoDeviceFound(f'no relay card with serial {serial_number}')
        raise NoDeviceFound('no compatible relay card detected')

    def detect_all(self):
        """Inventory of every reachable relay card, in driver priority
        order. Each call probes the hardware again."""
        inventory = []
        for card in self.cards:
            try:
                inventory.extend(card.detect_all())
            except RelayCardError as exc:
                LOG.warning('Could not list %s devices: %s', card.name, exc)
        return inventory

    def effective_relay_count(self, card_type, hardware_count):
        """Relays usable on a device: what the hardware advertises,
        limited by the configured relay count of the family."""
        count = min(hardware_count, MAX_RELAYS)
        limit = self.card(card_type).relay_limit
        if limit:
            count = min(count, limit)
        return count


class RelayEngine:
    """Get, set and pulse relays on a detected device."""
    def __init__(self, dispatcher):
        self.dispatcher = dispatcher
        self._locks = {}
        self._locks_guard = threading.Lock()

    def relay_count(self, handle):
        """Effective number of relays on this device"""
        return self.dispatcher.effective_relay_count(handle.card_type,
                                                     handle.relay_count)

    def check_relay(self, handle, relay):
        """Make sure the relay number exists on the device"""
        count = self.relay_count(handle)
        if not FIRST_RELAY <= relay <= count:
            raise RelayOutOfRange(f'relay {relay} not in {FIRST_RELAY}..{count}')

    def device_lock(self, handle):
        """One lock per device, serializing pulses"""
        key = (handle.card_type, handle.port)
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def get_relay(self, handle, relay):
        """Read the state of a relay: ON or OFF"""
        self.check_relay(handle, relay)
        card = self.dispatcher.card(handle.card_type)
        return card.get_relay(handle, relay)

    def set_relay(self, handle, relay, state):
        """Switch a relay ON or OFF. No retries on failure."""
        if state not in (RelayState.ON, RelayState.OFF):
            raise InvalidInput(f'cannot write state {state!r}')
        self.check_relay(handle, relay)
        card = self.dispatcher.card(handle.card_type)
        LOG.debug('Relay %d -> %s', relay, state.name)
        card.set_relay(handle, relay, state)

    def pulse(self, handle, relay, duration):
        """Invert the relay, wait `duration` seconds, restore it.

        The restoring write happens even if the first write failed;
        that failure is raised afterwards. Blocks for the whole pulse.
        """
        with self.device_lock(handle):
            original = self.get_relay(handle, relay)
            failure = None
            try:
                self.set_relay(handle, relay, original.inverted)
            except RelayCardError as exc:
                LOG.warning('Pulse on relay %d: first write failed: %s',
                            relay, exc)
                failure = exc
            time.sleep(duration)
            self.set_relay(handle, relay, original)
            if failure is not None:
                raise failure

    def read_all(self, handle):
        """States of all relays of the device, by relay number.
        Relays that can't be read are reported as None."""
        states = {}
        for relay in range(FIRST_RELAY, self.relay_count(handle) + 1):
            try:
                states[relay] = self.get_relay(handle, relay)
            except RelayCardError as exc:
                LOG.warning('Cannot read relay %d: %s', relay, exc)
                states[relay] = None
        return states
