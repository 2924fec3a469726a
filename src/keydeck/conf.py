"""User settings and config persistence for keydeck.

Config is stored at ~/.config/keydeck/config.json (XDG-compliant).
Key handlers are never persisted; only CLI/device preferences are.

Usage:
    from keydeck.conf import get_backend, get_poll_timeout

    get_backend()            # "hidapi" or "pyusb"
    get_poll_timeout()       # ms per process_events() call in `keydeck watch`
    get_selected_serial()    # keypad chosen with `keydeck select`
"""
from __future__ import annotations

import json
import logging
import os
from typing import Optional

from .constants import DEFAULT_POLL_TIMEOUT_MS
from .hid_device import BACKEND_HIDAPI, BACKENDS

log = logging.getLogger(__name__)

# =========================================================================
# Config file location (XDG-compliant)
# =========================================================================

_XDG_CONFIG = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
CONFIG_DIR = os.path.join(_XDG_CONFIG, 'keydeck')
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.json')


# =========================================================================
# Low-level config persistence
# =========================================================================

def load_config() -> dict:
    """Load user config from disk. Returns empty dict on missing/corrupt file."""
    try:
        with open(CONFIG_PATH, 'r') as f:
            config = json.load(f)
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, OSError) as e:
        log.warning("Ignoring unreadable config %s: %s", CONFIG_PATH, e)
        return {}
    return config if isinstance(config, dict) else {}


def save_config(config: dict):
    """Save user config to disk."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_PATH, 'w') as f:
        json.dump(config, f, indent=2)


def _update(key: str, value):
    config = load_config()
    if value is None:
        config.pop(key, None)
    else:
        config[key] = value
    save_config(config)


# =========================================================================
# Transport backend
# =========================================================================

def get_backend() -> str:
    """Saved transport backend, defaulting to hidapi."""
    backend = load_config().get('backend', BACKEND_HIDAPI)
    if backend not in BACKENDS:
        log.warning("Unknown backend %r in config, using %s", backend, BACKEND_HIDAPI)
        return BACKEND_HIDAPI
    return backend


def save_backend(backend: str):
    if backend not in BACKENDS:
        raise ValueError(f"Unknown transport backend: {backend!r}")
    _update('backend', backend)


# =========================================================================
# Event polling
# =========================================================================

def get_poll_timeout() -> int:
    """Read timeout (ms) used by the watch loop."""
    value = load_config().get('poll_timeout_ms', DEFAULT_POLL_TIMEOUT_MS)
    try:
        return int(value)
    except (TypeError, ValueError):
        return DEFAULT_POLL_TIMEOUT_MS


def save_poll_timeout(timeout_ms: int):
    _update('poll_timeout_ms', int(timeout_ms))


# =========================================================================
# Selected keypad (CLI device selection)
# =========================================================================

def get_selected_serial() -> Optional[str]:
    """Serial of the CLI-selected keypad. Returns None if unset."""
    return load_config().get('selected_serial') or None


def save_selected_serial(serial: Optional[str]):
    """Persist the CLI-selected keypad; None clears the selection."""
    _update('selected_serial', serial or None)
