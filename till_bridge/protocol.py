"""
JSON message definitions.

Two conversations share this module:

- Bridge -> tray service: calls are JSON objects with 'call', 'uid',
  'params', 'timestamp' and 'signature'. Replies echo the 'uid' and carry
  either 'result' or 'error' (plus an optional error 'code').
- POS client <-> local agent: messages carry an 'action' key (client ->
  agent) or an 'event' key (agent -> client).
"""

import json
import time
import uuid


# ─── Bridge → Tray service (Calls) ──────────────────────────────────────────

CALL_GET_DEFAULT = 'printers.getDefault'
CALL_FIND = 'printers.find'
CALL_PRINT = 'print'

# Reply error codes the tray service may attach
CODE_CERTIFICATE = 'certificate'
CODE_SIGNATURE = 'signature'
CODE_PRINTER = 'printer'


def generate_uid() -> str:
    """Generate a unique id correlating a call with its reply."""
    return uuid.uuid4().hex


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def signing_payload(call: str, params: dict, timestamp: int) -> str:
    """The exact string the backend is asked to sign for a call."""
    return json.dumps(
        {'call': call, 'params': params, 'timestamp': timestamp},
        sort_keys=True,
        separators=(',', ':'),
    )


def call_message(call: str, params: dict, uid: str, timestamp: int, signature: str = '') -> str:
    return json.dumps({
        'call': call,
        'uid': uid,
        'params': params,
        'timestamp': timestamp,
        'signature': signature,
    })


def certificate_message(certificate: str) -> str:
    """Handshake message sent right after the socket opens."""
    return json.dumps({
        'certificate': certificate or None,
    })


def raw_print_params(printer: str, data: bytes) -> dict:
    """Params for a raw (pass-through) print job."""
    return {
        'printer': {'name': printer},
        'options': {'encoding': None, 'copies': 1},
        'data': [{
            'type': 'raw',
            'format': 'command',
            'flavor': 'hex',
            'data': data.hex(),
        }],
    }


def parse_reply(raw: str) -> dict:
    """Parse a tray service reply. Returns dict or raises ValueError."""
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}")

    if not isinstance(msg, dict):
        raise ValueError("Reply must be a JSON object")

    if 'uid' not in msg:
        raise ValueError("Reply must have a 'uid' key")

    return msg


# ─── POS client → Agent (Commands) ──────────────────────────────────────────

ACTIONS = {
    'get_status',
    'open_drawer',
    'recheck_availability',
}


def make_command(action: str, **kwargs) -> str:
    """Create a JSON command string to send to the agent."""
    msg = {'action': action, **kwargs}
    return json.dumps(msg)


# ─── Agent → POS client (Events) ────────────────────────────────────────────

def status_event(version: str, availability: str, locked: bool) -> str:
    return json.dumps({
        'event': 'status',
        'version': version,
        'availability': availability,
        'locked': locked,
    })


def drawer_opened_event(printer: str) -> str:
    return json.dumps({
        'event': 'drawer_opened',
        'printer': printer,
    })


def drawer_error_event(error: str, error_class: str) -> str:
    return json.dumps({
        'event': 'drawer_error',
        'error': error,
        'class': error_class,
    })


def error_event(message: str, code: str = 'unknown') -> str:
    return json.dumps({
        'event': 'error',
        'message': message,
        'code': code,
    })


# ─── Parsing ────────────────────────────────────────────────────────────────

def parse_message(raw: str) -> dict:
    """Parse an incoming JSON message. Returns dict or raises ValueError."""
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}")

    if not isinstance(msg, dict):
        raise ValueError("Message must be a JSON object")

    if 'action' not in msg and 'event' not in msg:
        raise ValueError("Message must have 'action' or 'event' key")

    return msg
