"""
WebSocket protocol definitions for client <-> bridge communication.

All messages are JSON objects with either an 'action' key (client -> bridge)
or an 'event' key (bridge -> client).
"""

import json


# ─── Client → Bridge (Commands) ─────────────────────────────────────────────

def make_command(action: str, **kwargs) -> str:
    """Create a JSON command string to send to the bridge."""
    msg = {'action': action, **kwargs}
    return json.dumps(msg)


# ─── Bridge → Client (Events) ───────────────────────────────────────────────

def status_event(version: str, backend: str) -> str:
    return json.dumps({
        'event': 'status',
        'version': version,
        'backend': backend,
    })


def printers_event(printers: list) -> str:
    return json.dumps({
        'event': 'printers',
        'printers': printers,
    })


def drawer_result_event(printer_name, result: dict) -> str:
    return json.dumps({
        'event': 'drawer_result',
        'printerName': printer_name,
        **result,
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
