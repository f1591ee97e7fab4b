# -*- coding: utf-8 -*-
"""relaycard - unified control of USB and GPIO relay cards.

The state of any relay can be read or changed from the command line,
from a web browser showing the relay control page, or by HTTP API
clients talking to the built-in web server:

    GET /gpio?pin=2&status=1&serial=ABCDE

switches relay 2 of the card with serial number ABCDE on and returns
the state of all its relays, one "Relay N:0|1" line each. Status codes
are 0 = off, 1 = on, 2 = pulse; no status (or 3) only reports.

Nothing is stored: the relay states live in the hardware and are read
again for every request.
"""
__version__ = '0.14.0'
