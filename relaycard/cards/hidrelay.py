# -*- coding: utf-8 -*-
"""HID API compatible relay cards.

Cheap USB relay boards (V-USB firmware, product name "USBRelayN") are
driven with HID feature reports: the serial number and the relay
state bitmap are read from feature report 1, switching sends a
feature report with an ON (0xff) or OFF (0xfd) command.
"""
import hid

from . import (RelayCard, RelayCardType, RelayState, DeviceHandle,
               DeviceAccessDenied, TransportError)

VENDOR_ID, PRODUCT_ID = 0x16c0, 0x05df
PRODUCT_PREFIX = 'USBRelay'
DEFAULT_RELAYS = 2
REPORT_ID = 0x01
REPORT_SIZE = 9
SERIAL_SIZE = 5
STATE_BYTE = 7
CMD_ON, CMD_OFF = 0xff, 0xfd


def relay_count(product):
    """Relays on the board, from a product string like USBRelay4"""
    suffix = (product or '')[len(PRODUCT_PREFIX):]
    if (product or '').startswith(PRODUCT_PREFIX) and suffix.isdigit():
        return int(suffix)
    return DEFAULT_RELAYS


class HidDevice:
    """A relay board opened by its hidraw path"""
    def __init__(self, path, denied=TransportError):
        self.path = path
        self.denied = denied
        self.device = hid.device()

    def __enter__(self):
        try:
            self.device.open_path(self.path.encode())
        except OSError as exc:
            # enumerated, so it's there; hidapi gives no more detail than this
            raise self.denied(f'cannot open {self.path}: {exc}') from exc
        return self

    def __exit__(self, *_):
        self.device.close()

    def product(self):
        """The product string, e.g. USBRelay2"""
        try:
            return self.device.get_product_string()
        except (OSError, ValueError) as exc:
            raise TransportError(f'cannot read product of {self.path}') from exc

    def report(self):
        """Feature report 1: serial number and relay states"""
        try:
            report = self.device.get_feature_report(REPORT_ID, REPORT_SIZE)
        except (OSError, ValueError) as exc:
            raise TransportError(f'report read failed on {self.path}: {exc}') from exc
        if len(report) <= STATE_BYTE:
            raise TransportError(f'short report from {self.path}')
        return report

    def serial_number(self):
        """Five character serial number stored in the board"""
        report = self.report()
        return bytes(report[:SERIAL_SIZE]).decode('ascii', 'replace').rstrip('\x00')

    def command(self, command, relay):
        """Send an ON or OFF command for one relay"""
        try:
            written = self.device.send_feature_report(
                [0x00, command, relay, 0, 0, 0, 0, 0, 0])
        except (OSError, ValueError) as exc:
            raise TransportError(f'write failed on {self.path}: {exc}') from exc
        if written < 0:
            raise TransportError(f'write failed on {self.path}')


class HidRelayCard(RelayCard):
    """USB HID relay board with 1..8 relays"""
    card_type = RelayCardType.HID_API

    def candidates(self):
        for info in hid.enumerate(VENDOR_ID, PRODUCT_ID):
            path = info['path']
            yield path.decode() if isinstance(path, bytes) else path, None

    def probe(self, port):
        with HidDevice(port, denied=DeviceAccessDenied) as device:
            count = relay_count(device.product())
            serial_number = device.serial_number()
        return DeviceHandle(self.card_type, port, count, serial_number)

    def get_relay(self, handle, relay):
        with HidDevice(handle.port) as device:
            states = device.report()[STATE_BYTE]
        return RelayState.ON if states & (1 << (relay - 1)) else RelayState.OFF

    def set_relay(self, handle, relay, state):
        command = CMD_ON if state == RelayState.ON else CMD_OFF
        with HidDevice(handle.port) as device:
            device.command(command, relay)
