# -*- coding: utf-8 -*-
"""Conrad USB 4-channel relay card.

The card is built around a Silabs CP2104 USB-serial bridge; the four
relays hang on the GPIO lines of the bridge, which the cp210x kernel
driver exposes through two ioctls on the tty device.
"""
import errno
import fcntl
import struct

import serial
from serial.tools import list_ports

from . import (RelayCard, RelayCardType, RelayState, DeviceHandle,
               DeviceAccessDenied, TransportError)

VENDOR_ID, PRODUCT_ID = 0x10c4, 0xea60
NUM_RELAYS = 4

IOCTL_GPIOGET = 0x8000
IOCTL_GPIOSET = 0x8001
# the ioctls take a pointer to a C unsigned long
GPIO_WORD = 'L'


def open_port(port):
    """Open the tty, telling permission problems apart from other errors"""
    try:
        return serial.Serial(port)
    except serial.SerialException as exc:
        if exc.errno in (errno.EACCES, errno.EPERM):
            raise DeviceAccessDenied(f'no permission to open {port}') from exc
        raise TransportError(f'cannot open {port}: {exc}') from exc


def gpio_get(tty):
    """Read the GPIO latch of the CP2104"""
    buffer = bytearray(struct.pack(GPIO_WORD, 0))
    try:
        fcntl.ioctl(tty.fileno(), IOCTL_GPIOGET, buffer, True)
    except OSError as exc:
        raise TransportError(f'GPIO read failed on {tty.port}: {exc}') from exc
    return struct.unpack(GPIO_WORD, buffer)[0]


def gpio_set(tty, mask, value):
    """Change the GPIO lines selected by mask to value"""
    word = struct.pack(GPIO_WORD, (mask << 8) | value)
    try:
        fcntl.ioctl(tty.fileno(), IOCTL_GPIOSET, word)
    except OSError as exc:
        raise TransportError(f'GPIO write failed on {tty.port}: {exc}') from exc


class ConradCard(RelayCard):
    """Conrad 4-channel card on a /dev/ttyUSB port"""
    card_type = RelayCardType.CONRAD_4CHANNEL

    def candidates(self):
        ports = [port for port in list_ports.comports()
                 if (port.vid, port.pid) == (VENDOR_ID, PRODUCT_ID)]
        for port in sorted(ports, key=lambda port: port.device):
            yield port.device, port.serial_number or ''

    def probe(self, port):
        serial_number = dict(self.candidates()).get(port, '')
        with open_port(port) as tty:
            gpio_get(tty)
        return DeviceHandle(self.card_type, port, NUM_RELAYS, serial_number)

    def get_relay(self, handle, relay):
        with open_port(handle.port) as tty:
            gpio = gpio_get(tty)
        return RelayState.ON if gpio & (1 << (relay - 1)) else RelayState.OFF

    def set_relay(self, handle, relay, state):
        mask = 1 << (relay - 1)
        value = mask if state == RelayState.ON else 0
        with open_port(handle.port) as tty:
            gpio_set(tty, mask, value)
