"""
ESC/POS cash drawer kick command.

Cash drawers are connected to the printer's DK port. The drawer is
opened by sending the pulse command through the printer:

    ESC p <pin> <on-time> <off-time>

Pin 0 drives connector pin 2, pin 1 drives connector pin 5. The on/off
times are in printer units of roughly 2ms.
"""

from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any

from .errors import InvalidArgumentError

ESC = 0x1B
KICK_PREFIX = bytes((ESC, 0x70))  # ESC p
KICK_LENGTH = 5

DRAWER_PINS = (0, 1)
DEFAULT_PIN = 0
DEFAULT_PULSE_ON_TIME = 50    # ~100ms
DEFAULT_PULSE_OFF_TIME = 250  # ~500ms

# Accepted spellings for each option, camelCase first
_OPTION_KEYS = {
    'pin': ('pin',),
    'pulse_on_time': ('pulseOnTime', 'pulse_on_time'),
    'pulse_off_time': ('pulseOffTime', 'pulse_off_time'),
}


def _check_int(field_name: str, value: Any, low: int, high: int):
    # bool is an int subclass but never a valid timing value
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(
            f"Invalid options: {field_name} must be an integer, got {type(value).__name__}"
        )
    if value < low or value > high:
        raise InvalidArgumentError(
            f"Invalid options: {field_name} must be {low}-{high}, got {value}"
        )


@dataclass(frozen=True)
class DrawerOptions:
    """Drawer kick parameters. Out-of-range values are rejected."""

    pin: int = DEFAULT_PIN
    pulse_on_time: int = DEFAULT_PULSE_ON_TIME
    pulse_off_time: int = DEFAULT_PULSE_OFF_TIME

    def __post_init__(self):
        _check_int('pin', self.pin, DRAWER_PINS[0], DRAWER_PINS[-1])
        _check_int('pulseOnTime', self.pulse_on_time, 0, 255)
        _check_int('pulseOffTime', self.pulse_off_time, 0, 255)

    @classmethod
    def from_mapping(cls, options: Mapping | None, defaults: 'DrawerOptions | None' = None) -> 'DrawerOptions':
        """
        Build options from a caller-supplied mapping.

        Missing keys fall back to `defaults` (or the built-in defaults).
        Unknown keys are ignored.
        """
        base = defaults or cls()
        if options is None:
            return base
        if not isinstance(options, Mapping):
            raise InvalidArgumentError("Invalid options: expected an object")

        values = {
            'pin': base.pin,
            'pulse_on_time': base.pulse_on_time,
            'pulse_off_time': base.pulse_off_time,
        }
        for field_name, keys in _OPTION_KEYS.items():
            for key in keys:
                if key in options and options[key] is not None:
                    values[field_name] = options[key]
                    break

        return cls(**values)


def encode(options: DrawerOptions | None = None) -> bytes:
    """Build the drawer kick byte sequence for `options`."""
    if options is None:
        options = DrawerOptions()
    return KICK_PREFIX + bytes((options.pin, options.pulse_on_time, options.pulse_off_time))
