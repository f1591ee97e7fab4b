# -*- coding: utf-8 -*-
"""Built-in web server of the relaycard daemon.

A deliberately small HTTP/1.1 server: one connection at a time is read,
answered and closed before the next one is accepted. A pulse blocks the
server for the whole pulse duration.

Requests carry up to three parameters, in the URL query (GET) or in
the body (POST): pin (relay number), status (0 = off, 1 = on,
2 = pulse, 3 = no change) and serial (serial number of the card).
"""
import logging
import socket
from collections import namedtuple
from urllib.parse import parse_qsl

from . import pages
from .cards import RelayState, RelayCardError, InvalidInput, card_name

LOG = logging.getLogger('relaycardd.webapi')

BACKLOG = 5
LINE_SIZE = 256
# parameter buffer size, at most FORM_DATA_SIZE - 1 characters are kept
FORM_DATA_SIZE = 64

RELAY_TAG = 'pin'
STATE_TAG = 'status'
SERIAL_TAG = 'serial'

FormData = namedtuple('FormData', 'relay state serial')


def read_line(rfile):
    """One request line. Only the first LINE_SIZE bytes of a longer
    line are kept, the rest is read and discarded."""
    line = chunk = rfile.readline(LINE_SIZE)
    while chunk and not chunk.endswith(b'\n'):
        chunk = rfile.readline(LINE_SIZE)
    return line


def skip_headers(rfile):
    """Read header lines up to the blank line; return Content-Length"""
    length = 0
    while True:
        line = read_line(rfile)
        if not line or line in (b'\r\n', b'\n'):
            return length
        name, separator, value = line.partition(b':')
        if separator and name.strip().lower() == b'content-length':
            try:
                length = int(value.strip())
            except ValueError:
                raise InvalidInput(f'bad Content-Length: {value!r}') from None


def read_post_data(rfile):
    """Form data from a POST request body. Oversized bodies are
    rejected as a whole, never truncated."""
    length = skip_headers(rfile)
    if not 0 <= length < FORM_DATA_SIZE:
        raise InvalidInput(f'form data too long: {length} bytes')
    data = rfile.read(length)
    if len(data) < length:
        raise InvalidInput('connection closed before end of form data')
    return data.decode('utf-8', 'replace')


def read_get_data(url):
    """Form data from the URL query of a GET request.
    Note that this truncates the input if it's too long."""
    _, _, query = url.partition('?')
    return query[:FORM_DATA_SIZE - 1]


def int_field(fields, tag):
    """Integer value of a form field, None if absent"""
    value = fields.get(tag, '').strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise InvalidInput(f'{tag} is not a number: {value!r}') from None


def parse_form_data(form_data):
    """Relay number, requested state and serial number filter.
    Fields are key=value pairs; the first occurrence of a key wins."""
    fields = {}
    for key, value in parse_qsl(form_data, keep_blank_values=True):
        fields.setdefault(key, value)
    relay = int_field(fields, RELAY_TAG)
    status = int_field(fields, STATE_TAG)
    try:
        state = RelayState(status)
    except ValueError:
        state = RelayState.INVALID
    serial = fields.get(SERIAL_TAG) or None
    return FormData(relay, state, serial)


def apply_change(engine, handle, form, settings):
    """Switch or pulse the relay if the request asks for it"""
    if form.relay is None or form.state == RelayState.INVALID:
        return
    if form.state == RelayState.PULSE:
        LOG.info('Pulse on relay %d for %d s', form.relay, settings.pulse_duration)
        engine.pulse(handle, form.relay, settings.pulse_duration)
    else:
        LOG.info('Switch relay %d %s', form.relay, form.state.name)
        engine.set_relay(handle, form.relay, form.state)


def process_request(url, form_data, engine, settings):
    """Find the card, apply the requested change, report all relays.
    Returns the complete response."""
    api = pages.is_api_request(url)
    try:
        form = parse_form_data(form_data)
    except InvalidInput as exc:
        LOG.warning('Invalid input: %s', exc)
        return pages.api_invalid_input() if api else pages.page_invalid_input()

    try:
        handle = engine.dispatcher.detect_one(form.serial)
    except RelayCardError as exc:
        LOG.warning('No compatible device detected: %s', exc)
        return pages.api_no_device() if api else pages.page_no_device()

    error = None
    try:
        apply_change(engine, handle, form, settings)
    except RelayCardError as exc:
        LOG.error('Relay %s: %s', form.relay, exc)
        error = exc

    states = engine.read_all(handle)
    if api:
        return pages.api_status(states, error)
    return pages.control_page(card_name(handle.card_type), handle.port,
                              states, settings.labels, error)


def handle_connection(conn, engine, settings):
    """Read one request from the connection and answer it.
    Requests with an unsupported method get no answer at all."""
    with conn.makefile('rb') as rfile, conn.makefile('wb') as wfile:
        request_line = read_line(rfile).decode('latin-1')
        fields = request_line.split()
        if len(fields) < 2:
            LOG.warning('Malformed request line: %r', request_line)
            return
        method, url = fields[0].upper(), fields[1]

        try:
            if method == 'POST':
                form_data = read_post_data(rfile)
            elif method == 'GET':
                skip_headers(rfile)
                form_data = read_get_data(url)
            else:
                LOG.warning('Unsupported method %s', method)
                return
        except InvalidInput as exc:
            LOG.warning('%s %s: %s', method, url, exc)
            api = pages.is_api_request(url)
            wfile.write(pages.api_invalid_input() if api
                        else pages.page_invalid_input())
            return

        LOG.debug('%s %s form data: %r', method, url, form_data)
        response = process_request(url, form_data, engine, settings)
        status_line = response.split(b'\r\n', 1)[0].decode('ascii')
        LOG.info('%s %s: %s', method, url, status_line)
        wfile.write(response)


def handle_next(server, engine, settings):
    """Accept one connection and answer it. Errors are logged and
    end only this connection."""
    conn, peer = server.accept()
    with conn:
        try:
            handle_connection(conn, engine, settings)
        except (OSError, RelayCardError) as exc:
            LOG.warning('Connection from %s failed: %s', peer[0], exc)
        except Exception:
            LOG.exception('Unexpected error handling a request from %s', peer[0])


def serve(engine, settings):
    """Accept and handle connections one by one, forever"""
    address = (settings.server_iface, settings.server_port)
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind(address)
        server.listen(BACKLOG)
        LOG.info('HTTP server listening on %s:%d', *address)
        while True:
            handle_next(server, engine, settings)
