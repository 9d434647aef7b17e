"""
Bridge configuration management.

Config is an explicit object handed to every component. It can be bound to
a JSON file in the user's app data directory, or built in memory.
"""

import json
import os
import platform
from pathlib import Path

from . import __version__


# Default port for the local agent server
DEFAULT_PORT = 12322

# Default tray service endpoint (insecure WebSocket)
DEFAULT_TRAY_URL = 'ws://localhost:8182'

# Config filename
CONFIG_FILENAME = 'bridge_config.json'


def get_config_dir() -> Path:
    """Get the platform-specific config directory for Till Bridge."""
    system = platform.system()

    if system == 'Darwin':
        base = Path.home() / 'Library' / 'Application Support'
    elif system == 'Windows':
        base = Path(os.environ.get('APPDATA', Path.home() / 'AppData' / 'Roaming'))
    else:
        # Linux / other
        base = Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))

    config_dir = base / 'TillBridge'
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
    'api_base': 'http://127.0.0.1:8080/api/v1/contrib/tillbridge',
    'register_mappings': {},     # register id -> printer name
    'current_register': '',      # session register, last resort
    'debug_mode': False,
    'discovery_mode': False,
    'auto_submit_after_drawer': False,
    'resume_delay_ms': 500,      # pause before resuming after a failed drawer
    'drawer_cooldown_ms': 500,   # in-progress flag hold time after an operation
    'toolbar_reset_delay_ms': 2000,
    'tray_url': DEFAULT_TRAY_URL,
    'tray_connect_timeout': 5.0,
    'tray_call_timeout': 10.0,
    'tray_retries': 2,
    'tray_retry_delay': 1.0,
    'http_timeout': 10.0,
    'user_agent': f'till-bridge/{__version__}',
    'printer_codes': {},         # extra {pattern: {bytes, description}}
}


class BridgeConfig:
    """Bridge configuration, optionally persisted to a JSON file."""

    def __init__(self, path: Path | None = None, **overrides):
        self._path = path
        self._data = dict(DEFAULT_CONFIG)
        if self._path is not None:
            self.load()
        self._data.update(overrides)

    @classmethod
    def from_file(cls, path: Path | None = None) -> 'BridgeConfig':
        """Config bound to a file (the platform default when path is None)."""
        return cls(path=path or get_config_path())

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self):
        """Load config from file, creating defaults if not exists."""
        if self._path.exists():
            try:
                with open(self._path, 'r') as f:
                    saved = json.load(f)
                self._data.update(saved)
            except (json.JSONDecodeError, OSError):
                pass  # Use defaults on error
        else:
            self.save()

    def save(self):
        """Persist config to file. In-memory configs are not saved."""
        if self._path is None:
            return
        with open(self._path, 'w') as f:
            json.dump(self._data, f, indent=2)

    # ─── Local agent server ─────────────────────────────────────────────

    @property
    def port(self) -> int:
        return self._data.get('port', DEFAULT_PORT)

    @port.setter
    def port(self, value: int):
        self._data['port'] = value
        self.save()

    @property
    def host(self) -> str:
        return self._data.get('host', '127.0.0.1')

    @property
    def log_level(self) -> str:
        if self.debug_mode:
            return 'debug'
        return self._data.get('log_level', 'info')

    # ─── Backend ────────────────────────────────────────────────────────

    @property
    def api_base(self) -> str:
        return self._data.get('api_base', '')

    def api_url(self, endpoint: str) -> str:
        return self.api_base.rstrip('/') + '/' + endpoint.lstrip('/')

    @property
    def http_timeout(self) -> float:
        return float(self._data.get('http_timeout', 10.0))

    @property
    def user_agent(self) -> str:
        return self._data.get('user_agent') or f'till-bridge/{__version__}'

    # ─── Behaviour flags ────────────────────────────────────────────────

    @property
    def debug_mode(self) -> bool:
        return bool(self._data.get('debug_mode', False))

    @property
    def discovery_mode(self) -> bool:
        return bool(self._data.get('discovery_mode', False))

    @property
    def auto_submit_after_drawer(self) -> bool:
        return bool(self._data.get('auto_submit_after_drawer', False))

    @property
    def resume_delay(self) -> float:
        """Seconds to wait before resuming the workflow after a failure."""
        return self._data.get('resume_delay_ms', 500) / 1000.0

    @property
    def drawer_cooldown(self) -> float:
        return self._data.get('drawer_cooldown_ms', 500) / 1000.0

    @property
    def toolbar_reset_delay(self) -> float:
        return self._data.get('toolbar_reset_delay_ms', 2000) / 1000.0

    # ─── Tray service ───────────────────────────────────────────────────

    @property
    def tray_url(self) -> str:
        return self._data.get('tray_url', DEFAULT_TRAY_URL)

    @property
    def tray_connect_timeout(self) -> float:
        return float(self._data.get('tray_connect_timeout', 5.0))

    @property
    def tray_call_timeout(self) -> float:
        return float(self._data.get('tray_call_timeout', 10.0))

    @property
    def tray_retries(self) -> int:
        return int(self._data.get('tray_retries', 2))

    @property
    def tray_retry_delay(self) -> float:
        return float(self._data.get('tray_retry_delay', 1.0))

    @property
    def printer_codes(self) -> dict:
        return self._data.get('printer_codes') or {}

    # ─── Registers and printers ─────────────────────────────────────────

    @property
    def register_mappings(self) -> dict:
        mappings = self._data.get('register_mappings') or {}
        return {str(k): v for k, v in mappings.items()}

    @property
    def current_register(self) -> str:
        return str(self._data.get('current_register') or '')

    def get_current_register(self, page=None) -> str:
        """
        Resolve the active register id.

        Priority: visible #registerid field, then a hidden
        input[name="registerid"], then the session register.
        """
        if page is not None:
            select = page.get_by_id('registerid')
            if select is not None and select.value:
                return select.value

            hidden = page.select_one('input[name="registerid"]')
            if hidden is not None and hidden.value:
                return hidden.value

        return self.current_register

    def get_printer(self, page=None) -> str:
        """Printer mapped to the active register, or '' for the system default."""
        register = self.get_current_register(page)
        printer = self.register_mappings.get(register, '') if register else ''
        return printer or ''

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value):
        self._data[key] = value
        self.save()

    def override(self, **values):
        """Apply values for this run only; None values are ignored and nothing is saved."""
        self._data.update({k: v for k, v in values.items() if v is not None})

    def as_dict(self) -> dict:
        return dict(self._data)

    def __repr__(self):
        return f"BridgeConfig({self._data})"
