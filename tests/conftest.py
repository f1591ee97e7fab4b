"""Pytest fixtures for relaycard: in-memory relay cards, no hardware.

The fake cards implement the same candidates/probe/get/set contract as
the real drivers, so the dispatcher, the relay engine and the web
server run unchanged on top of them.
"""
import socket

import pytest

from relaycard.cards import (RelayCard, RelayCardType, RelayState, DeviceHandle,
                             DeviceAccessDenied, TransportError)
from relaycard.config import Settings
from relaycard.driver import Dispatcher, RelayEngine


class FakeDevice:
    """One relay board: serial number, relay states, failure switches"""
    def __init__(self, port, serial, relays=4, denied=False):
        self.port = port
        self.serial = serial
        self.states = [RelayState.OFF] * relays
        self.denied = denied
        self.failing_writes = 0
        self.failing_reads = set()


class FakeCard(RelayCard):
    """A relay card family backed by FakeDevice objects"""
    def __init__(self, settings, card_type, devices=(), limit=None,
                 serial_known=True):
        super().__init__(settings)
        self.card_type = card_type
        self.devices = list(devices)
        self.limit = limit
        self.serial_known = serial_known
        self.log = []

    @property
    def relay_limit(self):
        return self.limit

    def device(self, port):
        for device in self.devices:
            if device.port == port:
                return device
        raise TransportError(f'{port} is gone')

    def candidates(self):
        for device in self.devices:
            yield device.port, device.serial if self.serial_known else None

    def probe(self, port):
        device = self.device(port)
        if device.denied:
            raise DeviceAccessDenied(f'no permission to open {port}')
        return DeviceHandle(self.card_type, port, len(device.states), device.serial)

    def get_relay(self, handle, relay):
        device = self.device(handle.port)
        if relay in device.failing_reads:
            raise TransportError(f'read failed on relay {relay}')
        self.log.append(('get', relay))
        return device.states[relay - 1]

    def set_relay(self, handle, relay, state):
        device = self.device(handle.port)
        self.log.append(('set', relay, state))
        if device.failing_writes:
            device.failing_writes -= 1
            raise TransportError(f'write failed on relay {relay}')
        device.states[relay - 1] = state


@pytest.fixture
def settings():
    """Default settings with a few custom labels"""
    return Settings().with_labels(['Lamp', 'Heater <living room>'])


@pytest.fixture
def hid_card(settings):
    """A four relay HID card with serial ABCDE"""
    return FakeCard(settings, RelayCardType.HID_API,
                    [FakeDevice('/dev/hidraw0', 'ABCDE', relays=4)])


@pytest.fixture
def conrad_card(settings):
    """A Conrad card with serial CONRAD1"""
    return FakeCard(settings, RelayCardType.CONRAD_4CHANNEL,
                    [FakeDevice('/dev/ttyUSB0', 'CONRAD1', relays=4)])


@pytest.fixture
def engine(settings, hid_card):
    """Relay engine with only the HID card attached"""
    return RelayEngine(Dispatcher(settings, [hid_card]))


@pytest.fixture
def no_sleep(monkeypatch):
    """Record pulse delays instead of waiting"""
    delays = []
    monkeypatch.setattr('relaycard.driver.time.sleep', delays.append)
    return delays


@pytest.fixture
def http(engine, settings):
    """Send raw request bytes to the web server, return the raw response"""
    from relaycard.webapi import handle_connection

    def exchange(request, engine=engine, settings=settings):
        client, server = socket.socketpair()
        with client, server:
            client.sendall(request)
            client.shutdown(socket.SHUT_WR)
            handle_connection(server, engine, settings)
            server.close()
            chunks = []
            while True:
                chunk = client.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b''.join(chunks)
    return exchange
