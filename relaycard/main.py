# -*- coding: utf-8 -*-
"""relaycard - command line and daemon front end.

Interactive mode:
    relaycard -i                          list the detected relay cards
    relaycard [-s SERIAL] RELAY           print the state of a relay
    relaycard [-s SERIAL] RELAY on|off    switch a relay

Daemon mode:
    relaycard -d [LABEL ...]              start the built-in web server

In daemon mode the relays can be controlled from a web browser
(http://<my-ip-address>:8000) or by HTTP API clients
(http://<my-ip-address>:8000/gpio). Optional labels are shown next to
the relays on the web page, overriding the ones from the config file.
The daemon runs in the foreground; use a systemd unit to run it
as a service. Log messages go to the systemd journal.
"""
import argparse
import logging
import os
import signal
import sys

from . import __version__
from .cards import (MAX_RELAYS, RelayState, RelayCardError,
                    DeviceAccessDenied, card_name)
from .config import DEFAULT_CONFIG_FILE, load_config
from .driver import DRIVERS, Dispatcher, RelayEngine
from .webapi import serve

LOG = logging.getLogger('relaycardd')

PERMISSION_HINT = '\n'.join([
    'You might not have permissions to use the wanted device.',
    'If the device is connected, check what group the device belongs to.',
    'You may find the device group with "ls -al /dev/<device node name>"',
    'You can add a group to a user with "usermod -a -G <group name> <user name>"'])


def journald_setup(debug_mode=False):
    """Set up and start journald logging"""
    from systemd.journal import JournalHandler
    if debug_mode:
        LOG.addHandler(logging.StreamHandler(sys.stderr))
    journal_handler = JournalHandler(SYSLOG_IDENTIFIER='relaycard')
    log_entry_format = '[%(levelname)s] %(message)s'
    journal_handler.setFormatter(logging.Formatter(log_entry_format))
    LOG.setLevel(logging.DEBUG if debug_mode else logging.INFO)
    LOG.addHandler(journal_handler)


def supported_cards():
    """Names of the supported relay card families, one per line"""
    return '\n'.join(f'  - {card_name(driver.card_type)}' for driver in DRIVERS)


def parse_args(argv=None):
    """Command line arguments"""
    parser = argparse.ArgumentParser(
        prog='relaycard',
        description='Unified control of different types of relay cards.',
        epilog=f'Supported relay cards:\n{supported_cards()}',
        formatter_class=argparse.RawDescriptionHelpFormatter)
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('-i', '--info', action='store_true',
                      help='print information about the detected relay cards')
    mode.add_argument('-d', '--daemon', action='store_true',
                      help='start the built-in web server (runs in foreground)')
    parser.add_argument('-s', '--serial', metavar='SERIAL',
                        help='use the relay card with this serial number')
    parser.add_argument('-c', '--config', default=DEFAULT_CONFIG_FILE,
                        help=f'config file (default: {DEFAULT_CONFIG_FILE})')
    parser.add_argument('--debug', action='store_true',
                        help='log debug messages to stderr as well')
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')
    parser.add_argument('args', nargs='*', metavar='ARG',
                        help='RELAY [on|off]; relay labels in daemon mode')
    return parser, parser.parse_args(argv)


def print_inventory(dispatcher):
    """List all detected relay cards"""
    inventory = dispatcher.detect_all()
    if not inventory:
        print('No compatible device detected.')
        return 1
    print('\nDetected relay cards:')
    for number, info in enumerate(inventory, start=1):
        print(f'  #{number}\t{card_name(info.card_type)} (serial {info.serial or "n/a"})')
    return 0


def relay_command(parser, args, engine):
    """Read or switch one relay from the command line"""
    if len(args.args) > 2:
        parser.error('too many arguments')
    try:
        relay = int(args.args[0])
    except ValueError:
        parser.error(f'invalid relay number: {args.args[0]}')
    new_state = args.args[1].lower() if len(args.args) > 1 else None
    if new_state not in (None, 'on', 'off'):
        parser.error(f'invalid relay state: {args.args[1]}')

    try:
        handle = engine.dispatcher.detect_one(args.serial)
    except RelayCardError as exc:
        print('** No compatible device detected **')
        if isinstance(exc, DeviceAccessDenied) or os.geteuid() != 0:
            print(PERMISSION_HINT)
        return 1

    try:
        if new_state is None:
            state = engine.get_relay(handle, relay)
            print(f'Relay {relay} is {state.name.lower()}')
        else:
            state = RelayState.ON if new_state == 'on' else RelayState.OFF
            engine.set_relay(handle, relay, state)
    except RelayCardError as exc:
        print(f'Error: {exc}', file=sys.stderr)
        return 1
    return 0


def run_daemon(settings, engine):
    """Run the web server until SIGINT or SIGTERM"""
    def signal_handler(*_):
        """Exit gracefully if SIGINT or SIGTERM received"""
        raise KeyboardInterrupt

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    LOG.info('Starting relaycard daemon (version %s)', __version__)
    # detect once at startup, this also sets up the GPIO pins
    try:
        handle = engine.dispatcher.detect_one()
        LOG.info('Found %s on %s', card_name(handle.card_type), handle.port)
    except RelayCardError as exc:
        LOG.warning('No relay card detected at startup: %s', exc)

    try:
        serve(engine, settings)
    except KeyboardInterrupt:
        LOG.info('Exit relaycard daemon')
    except OSError as exc:
        LOG.error('Failed to run the HTTP server on %s:%d: %s',
                  settings.server_iface, settings.server_port, exc)
        return 1
    return 0


def main(argv=None):
    """Main function"""
    parser, args = parse_args(argv)
    if not (args.info or args.daemon or args.args):
        parser.print_help()
        return 0

    if args.daemon and len(args.args) > MAX_RELAYS:
        parser.error(f'at most {MAX_RELAYS} relay labels')

    if args.daemon:
        journald_setup(args.debug)
    elif args.debug:
        LOG.setLevel(logging.DEBUG)
        LOG.addHandler(logging.StreamHandler(sys.stderr))

    settings = load_config(args.config)
    if args.daemon:
        settings = settings.with_labels(args.args)
    engine = RelayEngine(Dispatcher(settings))

    if args.info:
        return print_inventory(engine.dispatcher)
    if args.daemon:
        return run_daemon(settings, engine)
    return relay_command(parser, args, engine)


if __name__ == '__main__':
    sys.exit(main())
