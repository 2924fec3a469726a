"""
keydeck - driver for 15-key USB keypads with per-key displays

Translates a left-to-right/top-to-bottom key index API into the
keypad's native HID protocol: key images as two-page output reports,
key presses from input reports, reset as a feature report.

Usage:
    # As a library
    from keydeck import open_keypad
    with open_keypad() as deck:
        deck.set_key_image(0, "play.png")
        deck.set_key_handler(0, on_play)
        deck.process_events(-1)

    # Command line
    keydeck detect        # List keypads
    keydeck watch         # Print key presses
"""

from keydeck.__version__ import __version__
from keydeck.constants import GLOBAL_KEY, INVALID_KEY
from keydeck.errors import (
    DeckError,
    DeckIOError,
    InvalidImageError,
    InvalidKeyError,
    NoDevicesError,
    UnknownDeviceError,
)
from keydeck.key_layout import STREAMDECK_15, KeyLayout, translate
from keydeck.keypad import Keypad, KeyHandler, open_keypad

__all__ = [
    "__version__",
    # Session
    "Keypad",
    "KeyHandler",
    "open_keypad",
    # Layout
    "KeyLayout",
    "STREAMDECK_15",
    "translate",
    "GLOBAL_KEY",
    "INVALID_KEY",
    # Errors
    "DeckError",
    "DeckIOError",
    "InvalidImageError",
    "InvalidKeyError",
    "NoDevicesError",
    "UnknownDeviceError",
]
