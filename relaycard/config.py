# -*- coding: utf-8 -*-
"""Configuration file handling for relaycard.

The file is an INI file read with ConfigParser, e.g.:

    [HTTP server]
    server_iface = 0.0.0.0
    server_port = 8000
    relay1_label = Lamp
    pulse_duration = 2

    [GPIO drv]
    num_relays = 2
    active_value = 0
    relay1_gpio_pin = 17
    relay2_gpio_pin = 18

    [Sainsmart drv]
    num_relays = 8

Everything is optional; unset values use the built-in defaults.
The result is a Settings snapshot which is never changed afterwards.
"""
import dataclasses
import ipaddress
import logging
from configparser import ConfigParser, Error as ConfigParserError

from .cards import MAX_RELAYS

LOG = logging.getLogger('relaycardd.config')

DEFAULT_CONFIG_FILE = '/etc/relaycard.conf'
DEFAULT_IFACE = '0.0.0.0'
DEFAULT_PORT = 8000
MAX_PORT = 65535
DEFAULT_LABELS = tuple(f'My appliance {number}'
                       for number in range(1, MAX_RELAYS + 1))

HTTP_SECTION = 'HTTP server'
GPIO_SECTION = 'GPIO drv'
SAINSMART_SECTION = 'Sainsmart drv'


@dataclasses.dataclass(frozen=True)
class Settings:
    """Resolved configuration. None means "use the driver default"."""
    server_iface: str = DEFAULT_IFACE
    server_port: int = DEFAULT_PORT
    labels: tuple = DEFAULT_LABELS
    pulse_duration: int = 1
    gpio_num_relays: int = None
    gpio_active_value: int = 1
    gpio_pins: tuple = (None,) * MAX_RELAYS
    sainsmart_num_relays: int = None

    def with_labels(self, labels):
        """Copy of these settings with the first len(labels) relay
        labels replaced, e.g. by labels from the command line."""
        labels = list(labels)[:MAX_RELAYS]
        merged = tuple(labels) + self.labels[len(labels):]
        return dataclasses.replace(self, labels=merged)


def parse_pin(value):
    """GPIO pins are numbers (BCM numbering) or names like PA9 (SUNXI)"""
    value = value.strip()
    return int(value) if value.isdigit() else value


def parse_positive(value):
    """Parse a whole number greater than zero"""
    number = int(value)
    if number < 1:
        raise ValueError(f'{value} is not a positive number')
    return number


def parse_active_value(value):
    """Relay polarity: 1 = active high, 0 = active low"""
    number = int(value)
    if number not in (0, 1):
        raise ValueError(f'active_value must be 0 or 1, not {value}')
    return number


def parse_port(value):
    """TCP port number, 1..65535"""
    number = parse_positive(value)
    if number > MAX_PORT:
        raise ValueError(f'{value} is not a valid port number')
    return number


def parse_iface(value):
    """Listening interface, must be an IPv4 address"""
    return str(ipaddress.IPv4Address(value.strip()))


def _relay_key(key, prefix, suffix):
    """Relay number from a per-relay key like relay3_label, or None"""
    if not (key.startswith(prefix) and key.endswith(suffix)):
        return None
    number = key[len(prefix):len(key) - len(suffix)]
    if not number.isdigit() or not 1 <= int(number) <= MAX_RELAYS:
        return None
    return int(number)


def _http_key(values, key, raw):
    if key == 'server_iface':
        try:
            values['server_iface'] = parse_iface(raw)
        except ValueError:
            LOG.info('Invalid iface address in config file, using default value')
    elif key == 'server_port':
        values['server_port'] = parse_port(raw)
    elif key == 'pulse_duration':
        # zero or negative durations make no sense, use the shortest pulse
        values['pulse_duration'] = max(int(raw), 1)
    elif _relay_key(key, 'relay', '_label'):
        number = _relay_key(key, 'relay', '_label')
        values['labels'][number - 1] = raw
    else:
        return False
    return True


def _gpio_key(values, key, raw):
    if key == 'num_relays':
        values['gpio_num_relays'] = min(parse_positive(raw), MAX_RELAYS)
    elif key == 'active_value':
        values['gpio_active_value'] = parse_active_value(raw)
    elif _relay_key(key, 'relay', '_gpio_pin'):
        number = _relay_key(key, 'relay', '_gpio_pin')
        values['gpio_pins'][number - 1] = parse_pin(raw)
    else:
        return False
    return True


def _sainsmart_key(values, key, raw):
    if key == 'num_relays':
        values['sainsmart_num_relays'] = min(parse_positive(raw), MAX_RELAYS)
    else:
        return False
    return True


SECTIONS = {HTTP_SECTION: _http_key,
            GPIO_SECTION: _gpio_key,
            SAINSMART_SECTION: _sainsmart_key}


def load_config(path=DEFAULT_CONFIG_FILE):
    """Read the configuration file and return a Settings snapshot.
    A missing or unreadable file gives the default settings."""
    parser = ConfigParser(interpolation=None)
    try:
        if not parser.read(path):
            LOG.info("Can't load %s, using default parameters", path)
            return Settings()
    except ConfigParserError as exc:
        LOG.warning("Can't parse %s (%s), using default parameters", path, exc)
        return Settings()

    values = dict(labels=list(DEFAULT_LABELS),
                  gpio_pins=[None] * MAX_RELAYS)
    LOG.info('Config parameters read from %s:', path)
    for section in parser.sections():
        handler = SECTIONS.get(section)
        if handler is None:
            LOG.warning('unknown config section %s', section)
            continue
        for key, raw in parser.items(section):
            try:
                known = handler(values, key, raw)
            except ValueError:
                LOG.warning('invalid value for %s/%s: %r, using default',
                            section, key, raw)
                continue
            if known:
                LOG.info('%s: %s', key, raw)
            else:
                LOG.warning('unknown config parameter %s/%s', section, key)

    values['labels'] = tuple(values['labels'])
    values['gpio_pins'] = tuple(values['gpio_pins'])
    return Settings(**values)
