# -*- coding: utf-8 -*-
"""Relay card families supported by relaycard.

Every family lives in its own module and implements the RelayCard
interface below: probe for one device (optionally by serial number),
list every reachable device, read and write a single relay.
The dispatcher in relaycard.driver decides which family to use.
"""
import logging
from collections import namedtuple
from enum import IntEnum

LOG = logging.getLogger('relaycardd.cards')

MAX_RELAYS = 8
FIRST_RELAY = 1


class RelayCardType(IntEnum):
    """Supported hardware families, in detection priority order."""
    NO_CARD = 0
    CONRAD_4CHANNEL = 1
    SAINSMART = 2
    HID_API = 3
    GENERIC_GPIO = 4
    LAST = 5


CARD_NAMES = {RelayCardType.NO_CARD: 'No card',
              RelayCardType.CONRAD_4CHANNEL: 'Conrad USB 4-channel relay card',
              RelayCardType.SAINSMART: 'Sainsmart USB 4/8-channel relay card',
              RelayCardType.HID_API: 'HID API compatible relay card',
              RelayCardType.GENERIC_GPIO: 'Generic GPIO relays'}


class RelayState(IntEnum):
    """Relay state codes. The integer values are used on the wire."""
    OFF = 0
    ON = 1
    PULSE = 2
    INVALID = 3

    @property
    def inverted(self):
        """ON for OFF and vice versa"""
        if self is RelayState.ON:
            return RelayState.OFF
        if self is RelayState.OFF:
            return RelayState.ON
        raise ValueError(f'{self.name} has no inverse')


# port: transport identifier (device path, USB url, "gpio")
# relay_count: number of relays the hardware advertises
DeviceHandle = namedtuple('DeviceHandle', 'card_type port relay_count serial')
RelayInfo = namedtuple('RelayInfo', 'card_type serial')


def card_name(card_type):
    """Human readable name of a relay card family"""
    return CARD_NAMES.get(card_type, 'Unknown relay card')


class RelayCardError(Exception):
    """Base class for every relay card failure."""


class NoDeviceFound(RelayCardError):
    """No compatible device found, or none with the requested serial."""


class DeviceAccessDenied(RelayCardError):
    """The device is present, but this process may not open it."""


class TransportError(RelayCardError):
    """Communication with an already detected device failed."""


class InvalidInput(RelayCardError):
    """Malformed or oversized request data."""


class RelayOutOfRange(RelayCardError):
    """Relay number outside 1..effective relay count of the device."""


class RelayCard:
    """Interface of a relay card family driver.

    Drivers hold no per-device state between calls: every method takes
    the DeviceHandle produced by detect(), which the dispatcher resolves
    again for each external request.
    """
    card_type = RelayCardType.NO_CARD

    def __init__(self, settings):
        self.settings = settings

    @property
    def name(self):
        """Display name of the family"""
        return card_name(self.card_type)

    @property
    def relay_limit(self):
        """Configured relay count override for this family, or None."""
        return None

    def candidates(self):
        """Yield (port, serial_number) for every device of this family
        seen on the system. serial_number is None if it can only be
        read after opening the device."""
        raise NotImplementedError

    def probe(self, port):
        """Open the device at port and return its DeviceHandle.
        Raises DeviceAccessDenied or TransportError."""
        raise NotImplementedError

    def detect(self, serial_number=None):
        """Find the first device of this family. If serial_number is given,
        accept only a device reporting exactly that serial number.
        Raises NoDeviceFound, or the most relevant probing failure
        if some candidate could not be opened."""
        failure = None
        for port, serial in self.candidates():
            if None not in (serial, serial_number) and serial != serial_number:
                continue
            try:
                handle = self.probe(port)
            except (DeviceAccessDenied, TransportError) as exc:
                LOG.warning('%s on %s: %s', self.name, port, exc)
                failure = worst_failure(failure, exc)
                continue
            if serial_number is None or handle.serial == serial_number:
                return handle
        if failure is not None:
            raise failure
        raise NoDeviceFound(f'no {self.name} found')

    def detect_all(self):
        """List all reachable devices of this family as RelayInfo."""
        found = []
        for port, _ in self.candidates():
            try:
                handle = self.probe(port)
            except (DeviceAccessDenied, TransportError) as exc:
                LOG.warning('%s on %s: %s', self.name, port, exc)
                continue
            found.append(RelayInfo(self.card_type, handle.serial))
        return found

    def get_relay(self, handle, relay):
        """Read the state of relay number `relay` (1-based): ON or OFF."""
        raise NotImplementedError

    def set_relay(self, handle, relay, state):
        """Switch relay number `relay` (1-based) to ON or OFF."""
        raise NotImplementedError


def worst_failure(current, new):
    """Pick the probe failure to report: permission problems win."""
    if current is None or isinstance(new, DeviceAccessDenied):
        return new
    return current
