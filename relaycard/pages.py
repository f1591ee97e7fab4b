# -*- coding: utf-8 -*-
"""HTTP responses of the relaycard daemon.

Two audiences: HTTP API clients get a short plain text report,
browsers get the relay control page. Every response carries the same
framing headers and closes the connection.
"""
from email.utils import formatdate
from html import escape

from . import __version__
from .cards import RelayState

PROTOCOL = 'HTTP/1.1'
SERVER = f'relaycard/{__version__}'
API_URL = 'gpio'
CRLF = '\r\n'

OK = (200, 'OK')
INTERNAL_ERROR = (500, 'Internal Error')
NO_DEVICE = (503, 'No compatible device detected')

TEXT, HTML = 'text/plain', 'text/html'


def is_api_request(url):
    """API requests have the API marker in the path, anything else
    is a browser asking for the control page."""
    path = url.split('?', 1)[0]
    return API_URL in path


def headers(status, mime, length):
    """Status line and header block"""
    code, reason = status
    lines = [f'{PROTOCOL} {code} {reason}',
             f'Server: {SERVER}',
             f'Date: {formatdate(usegmt=True)}',
             f'Content-Type: {mime}; charset=utf-8',
             f'Content-Length: {length}',
             'Connection: close',
             '', '']
    return CRLF.join(lines)


def response(status, mime, body):
    """A complete HTTP response as bytes"""
    payload = body.encode('utf-8')
    return headers(status, mime, len(payload)).encode('ascii') + payload


# API responses

def api_status(states, error=None):
    """Plain text report: one "Relay N:0|1" line per relay.
    An unreadable relay shows as "Relay N:?"."""
    lines = []
    if error is not None:
        lines.append(f'ERROR: {error}')
    for relay, state in states.items():
        value = '?' if state is None else int(state)
        lines.append(f'Relay {relay}:{value}')
    failed = error is not None or None in states.values()
    body = ''.join(line + CRLF for line in lines)
    return response(INTERNAL_ERROR if failed else OK, TEXT, body)


def api_no_device():
    """API answer when no relay card was found"""
    return response(NO_DEVICE, TEXT, 'ERROR: No compatible device detected')


def api_invalid_input():
    """API answer to malformed or oversized input"""
    return response(INTERNAL_ERROR, TEXT, 'ERROR: Invalid Input. ' + CRLF)


# Web page

STYLE = """<style>
.switch { position: relative; display: inline-block; width: 60px; height: 34px; }
.switch input { opacity: 0; width: 0; height: 0; }
.slider { position: absolute; cursor: pointer; top: 0; left: 0; right: 0; bottom: 0;
  background-color: #ccc; -webkit-transition: .4s; transition: .4s; }
.slider:before { position: absolute; content: ""; height: 26px; width: 26px;
  left: 4px; bottom: 4px; background-color: white; -webkit-transition: .4s; transition: .4s; }
input:checked + .slider { background-color: #2196F3; }
input:focus + .slider { box-shadow: 0 0 1px #2196F3; }
input:checked + .slider:before { transform: translateX(26px); }
input:disabled + .slider { cursor: not-allowed; opacity: 0.4; }
table { width: 460px; font-family: Helvetica,Arial,sans-serif; }
</style>
"""

SCRIPT = f"""<script type='text/javascript'>
function switch_relay(checkboxElem) {{
   var status = checkboxElem.checked ? 1 : 0;
   var url = '/{API_URL}?pin=' + checkboxElem.id + '&status=' + status;
   var xmlHttp = new XMLHttpRequest();
   xmlHttp.onreadystatechange = function () {{
      if (this.readyState < 4)
         document.getElementById('status').innerHTML = '';
      else if (this.status == 0) {{
         document.getElementById('status').innerHTML = 'Network error';
         checkboxElem.checked = (status == 0);
      }}
      else if (this.status != 200) {{
         document.getElementById('status').innerHTML = this.statusText;
         checkboxElem.checked = (status == 0);
      }}
   }};
   xmlHttp.open('GET', url, true);
   xmlHttp.send(null);
}}
</script>
"""

PAGE_HEADER = f"""<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>Relay Card Control</title>
{STYLE}{SCRIPT}</head>
<body><table style="background-color: #2196F3; font-weight: bold; color: white;" cellpadding="2">
<tr><td><span style="font-size: 48px;">Relay Card Control</span><br>
<span style="font-size: 16px; color: rgb(204, 255, 255);">Remote relay card control
<span style="font-style: italic; color: white;">made easy</span></span></td></tr>
</table><br>
"""

PAGE_FOOTER = f"""<table style="background-color: #2196F3; text-align: center; color: white;" cellpadding="2">
<tr><td>relaycard | version {__version__}</td></tr>
</table></body></html>
"""

NO_DEVICE_PANEL = """<table style="background-color: yellow; color: black;" cellpadding="2">
<tr><td style="font-size: 20px; font-weight: bold;">No compatible relay card detected !<br>
<span style="font-size: 14px; color: grey; font-weight: normal;">This can be due to the following reasons:
<div>- No supported relay card is connected via USB cable</div>
<div>- The relay card is connected but it is broken</div>
<div>- There is no GPIO support available or GPIO pins are not defined in the config file</div>
<div>- You are running on a multiuser OS and don't have permissions to access the device</div>
</span></td></tr></table><br>
"""


def page(content, status=OK):
    """Wrap content in the page shell"""
    return response(status, HTML, PAGE_HEADER + content + PAGE_FOOTER)


def error_panel(message):
    """Styled error message inside the page"""
    return ('<table style="background-color: yellow; color: black;" cellpadding="2">'
            f'<tr><td style="font-size: 20px; font-weight: bold;">{escape(message)}'
            '</td></tr></table><br>\n')


def relay_row(relay, label, state):
    """Relay name, label and switch"""
    checked = ' checked' if state == RelayState.ON else ''
    disabled = ' disabled' if state is None else ''
    return (f'<tr style="vertical-align: top; background-color: rgb(230, 230, 255);">'
            f'<td style="width: 300px; font-weight: bold; font-size: 20px;">Relay {relay}<br>'
            f'<span style="font-style: italic; font-size: 16px; color: grey;">{escape(label)}</span></td>'
            '<td style="text-align: center; vertical-align: middle; width: 100px; background-color: white;">'
            f'<label class="switch"><input type="checkbox"{checked}{disabled} id="{relay}" '
            'onchange="switch_relay(this)"><span class="slider"></span></label></td></tr>\n')


def control_page(card, port, states, labels, error=None):
    """The relay control page, showing the states just read"""
    rows = [f'<table cellpadding="2" cellspacing="3"><tr style="font-size: 14px; background-color: lightgrey;">'
            f'<td style="width: 200px;">{escape(card)}<br>'
            f'<span style="font-style: italic; font-size: 12px; color: grey;">on {escape(port)}</span></td>'
            '<td style="background-color: white;"></td></tr>\n']
    for relay, state in states.items():
        rows.append(relay_row(relay, labels[relay - 1], state))
    rows.append('</table><br>\n')
    rows.append('<span id="status" style="font-size: 16px; color: red; '
                'font-family: Helvetica,Arial,sans-serif;"></span><br><br>\n')
    failed = error is not None or None in states.values()
    content = ''.join(rows)
    if error is not None:
        content = error_panel(f'ERROR: {error}') + content
    return page(content, INTERNAL_ERROR if failed else OK)


def page_no_device():
    """Control page explaining that no relay card was found"""
    return page(NO_DEVICE_PANEL, NO_DEVICE)


def page_invalid_input():
    """Control page for malformed or oversized input"""
    return page(error_panel('ERROR: Invalid Input.'), INTERNAL_ERROR)
