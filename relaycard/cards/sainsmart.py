# -*- coding: utf-8 -*-
"""Sainsmart USB 4/8-channel relay card.

These cards use an FTDI FT245RL in synchronous bit-bang mode: each data
line drives one relay (relay 1 = D0). The 4 and 8 channel variants can't
be told apart over USB, so the number of relays comes from the
[Sainsmart drv] num_relays setting, 4 if not configured.
"""
import errno

from pyftdi.ftdi import Ftdi, FtdiError
from pyftdi.usbtools import UsbToolsError
from usb.core import USBError

from . import (RelayCard, RelayCardType, RelayState, DeviceHandle,
               DeviceAccessDenied, TransportError)

VENDOR_ID, PRODUCT_ID = 0x0403, 0x6001
HARDWARE_RELAYS = 8
DEFAULT_RELAYS = 4
ALL_OUTPUTS = 0xff


def device_url(descriptor):
    """pyftdi URL of a device, by serial number if it has one"""
    if descriptor.sn:
        selector = descriptor.sn
    else:
        selector = f'{descriptor.bus:x}:{descriptor.address:x}'
    return f'ftdi://{VENDOR_ID:#06x}:{PRODUCT_ID:#06x}:{selector}/1'


class BitBang:
    """FT245RL opened in bit-bang mode, as a context manager"""
    def __init__(self, url):
        self.url = url
        self.ftdi = Ftdi()

    def __enter__(self):
        try:
            self.ftdi.open_bitbang_from_url(self.url, direction=ALL_OUTPUTS)
        except USBError as exc:
            if exc.errno in (errno.EACCES, errno.EPERM):
                raise DeviceAccessDenied(f'no permission to open {self.url}') from exc
            raise TransportError(f'cannot open {self.url}: {exc}') from exc
        except (FtdiError, UsbToolsError, ValueError) as exc:
            raise TransportError(f'cannot open {self.url}: {exc}') from exc
        return self

    def __exit__(self, *_):
        # freeze: leave the outputs as they are, don't reset the chip
        self.ftdi.close(freeze=True)

    def read(self):
        """Current state of the 8 data lines"""
        try:
            return self.ftdi.read_pins()
        except (FtdiError, USBError) as exc:
            raise TransportError(f'read failed on {self.url}: {exc}') from exc

    def write(self, value):
        """Drive the 8 data lines"""
        try:
            self.ftdi.write_data(bytes([value]))
        except (FtdiError, USBError) as exc:
            raise TransportError(f'write failed on {self.url}: {exc}') from exc


class SainsmartCard(RelayCard):
    """Sainsmart FTDI based 4 or 8 channel card"""
    card_type = RelayCardType.SAINSMART

    @property
    def relay_limit(self):
        return self.settings.sainsmart_num_relays or DEFAULT_RELAYS

    def candidates(self):
        try:
            devices = Ftdi.list_devices(f'ftdi://{VENDOR_ID:#06x}:{PRODUCT_ID:#06x}/1')
        except (FtdiError, UsbToolsError, USBError, ValueError) as exc:
            raise TransportError(f'USB enumeration failed: {exc}') from exc
        for descriptor, _ in devices:
            yield device_url(descriptor), descriptor.sn or ''

    def probe(self, port):
        serial_number = dict(self.candidates()).get(port, '')
        with BitBang(port) as device:
            device.read()
        return DeviceHandle(self.card_type, port, HARDWARE_RELAYS, serial_number)

    def get_relay(self, handle, relay):
        with BitBang(handle.port) as device:
            pins = device.read()
        return RelayState.ON if pins & (1 << (relay - 1)) else RelayState.OFF

    def set_relay(self, handle, relay, state):
        bit = 1 << (relay - 1)
        with BitBang(handle.port) as device:
            pins = device.read()
            device.write(pins | bit if state == RelayState.ON else pins & ~bit)
