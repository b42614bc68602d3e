"""Bridge settings and config persistence for ITGIO Linux.

Config is stored at ~/.config/itgio/config.json (XDG-compliant).

Usage:
    from itgio.conf import load_settings

    settings = load_settings()
    settings.base_path          # pipe base path, "/opt/itgio"
    settings.poll_interval      # seconds between button polls
    settings.control_timeout_ms # USB control transfer timeout

    # Low-level config access
    from itgio.conf import load_config, save_config
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass

from .constants import CONTROL_TIMEOUT_MS, DEFAULT_BASE_PATH, POLL_INTERVAL_S

log = logging.getLogger(__name__)

# =========================================================================
# Config file location (XDG-compliant)
# =========================================================================

_XDG_CONFIG = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
CONFIG_DIR = os.path.join(_XDG_CONFIG, 'itgio')
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.json')


# =========================================================================
# Low-level config persistence
# =========================================================================

def load_config() -> dict:
    """Load user config from disk. Returns empty dict on missing/corrupt file."""
    try:
        with open(CONFIG_PATH, 'r') as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {}
    return config if isinstance(config, dict) else {}


def save_config(config: dict):
    """Save user config to disk."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_PATH, 'w') as f:
        json.dump(config, f, indent=2)


# =========================================================================
# Bridge settings
# =========================================================================

@dataclass
class BridgeSettings:
    """Runtime settings for the pipe bridge."""
    base_path: str = DEFAULT_BASE_PATH
    poll_interval_ms: int = int(POLL_INTERVAL_S * 1000)
    control_timeout_ms: int = CONTROL_TIMEOUT_MS

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000.0

    def stream_base_path(self, index: int) -> str:
        """Pipe base path for the *index*-th device."""
        return f"{self.base_path}_{index}"

    @classmethod
    def from_dict(cls, data: dict) -> 'BridgeSettings':
        settings = cls()
        if isinstance(data.get('base_path'), str) and data['base_path']:
            settings.base_path = data['base_path']
        for key in ('poll_interval_ms', 'control_timeout_ms'):
            value = data.get(key)
            if value is None:
                continue
            try:
                value = int(value)
            except (TypeError, ValueError):
                log.warning("Ignoring invalid %s in config: %r", key, value)
                continue
            if value <= 0:
                log.warning("Ignoring non-positive %s in config: %r", key, value)
                continue
            setattr(settings, key, value)
        return settings

    def to_dict(self) -> dict:
        return asdict(self)


def load_settings() -> BridgeSettings:
    """Defaults overlaid with the 'bridge' section of the config file."""
    section = load_config().get('bridge', {})
    if not isinstance(section, dict):
        log.warning("Ignoring malformed 'bridge' section in %s", CONFIG_PATH)
        section = {}
    return BridgeSettings.from_dict(section)


def save_settings(settings: BridgeSettings):
    """Persist *settings* under the 'bridge' section."""
    config = load_config()
    config['bridge'] = settings.to_dict()
    save_config(config)
