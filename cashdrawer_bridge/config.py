"""
Bridge configuration management.

Config is stored in a JSON file in the user's app data directory.
"""

import json
import logging
import os
import platform
from pathlib import Path

logger = logging.getLogger('cashdrawer.bridge.config')

# Default HTTP/WebSocket port
DEFAULT_PORT = 12322

# Config filename
CONFIG_FILENAME = 'bridge_config.json'

BACKENDS = ('auto', 'win32', 'cups', 'escpos')
DISCOVERY_SOURCES = ('native', 'text')


def get_config_dir() -> Path:
    """Get the platform-specific config directory for the bridge."""
    system = platform.system()

    if system == 'Darwin':
        base = Path.home() / 'Library' / 'Application Support'
    elif system == 'Windows':
        base = Path(os.environ.get('APPDATA', Path.home() / 'AppData' / 'Roaming'))
    else:
        # Linux / other
        base = Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))

    config_dir = base / 'CashDrawerBridge'
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the full path to the config file."""
    return get_config_dir() / CONFIG_FILENAME


# Default configuration
DEFAULT_CONFIG = {
    'port': DEFAULT_PORT,
    'host': '127.0.0.1',
    'log_level': 'info',
    'backend': 'auto',
    'discovery_source': 'native',
    'discover_devices': False,
    'transport_timeout': 10.0,
    'discovery_timeout': 15.0,
    'drawer_pin': 0,
    'drawer_pulse_on': 50,
    'drawer_pulse_off': 250,
}


class BridgeConfig:
    """Bridge configuration with file persistence."""

    def __init__(self, path: Path | None = None):
        self._path = Path(path) if path is not None else get_config_path()
        self._data = dict(DEFAULT_CONFIG)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    def load(self):
        """Load config from file, creating defaults if not exists."""
        if self._path.exists():
            try:
                with open(self._path, 'r') as f:
                    saved = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Ignoring unreadable config {self._path}: {e}")
                return
            if isinstance(saved, dict):
                self._data.update(saved)
            else:
                logger.warning(f"Ignoring config {self._path}: expected a JSON object")
        else:
            self.save()

    def save(self):
        """Persist config to file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, 'w') as f:
            json.dump(self._data, f, indent=2)

    @property
    def port(self) -> int:
        return self._data.get('port', DEFAULT_PORT)

    @property
    def host(self) -> str:
        return self._data.get('host', '127.0.0.1')

    @property
    def log_level(self) -> str:
        return self._data.get('log_level', 'info')

    @property
    def backend(self) -> str:
        backend = self._data.get('backend', 'auto')
        if backend not in BACKENDS:
            logger.warning(f"Unknown backend '{backend}' in config, using 'auto'")
            return 'auto'
        return backend

    @property
    def discovery_source(self) -> str:
        source = self._data.get('discovery_source', 'native')
        return source if source in DISCOVERY_SOURCES else 'native'

    @property
    def discover_devices(self) -> bool:
        return bool(self._data.get('discover_devices', False))

    def _seconds(self, key: str) -> float:
        value = self._data.get(key, DEFAULT_CONFIG[key])
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid {key} {value!r} in config, using {DEFAULT_CONFIG[key]}")
            return DEFAULT_CONFIG[key]
        if not seconds > 0:
            # Also rejects NaN
            logger.warning(f"Invalid {key} {value!r} in config, using {DEFAULT_CONFIG[key]}")
            return DEFAULT_CONFIG[key]
        return seconds

    @property
    def transport_timeout(self) -> float:
        return self._seconds('transport_timeout')

    @property
    def discovery_timeout(self) -> float:
        return self._seconds('discovery_timeout')

    @property
    def drawer_defaults(self) -> dict:
        """Default drawer options in the wire spelling."""
        return {
            'pin': self._data.get('drawer_pin', 0),
            'pulseOnTime': self._data.get('drawer_pulse_on', 50),
            'pulseOffTime': self._data.get('drawer_pulse_off', 250),
        }

    def set(self, key: str, value):
        self._data[key] = value
        self.save()

    def __repr__(self):
        return f"BridgeConfig({self._data})"
