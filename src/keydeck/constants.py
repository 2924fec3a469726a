"""Shared constants for keydeck.

USB ids, report layouts and the image-transfer header tables for the
15-key keypad.  Header tables from python-elgato-streamdeck
(StreamDeckOriginal.py, MIT License).
"""

# USB ids
VENDOR_ID = 0x0FD9          # 4057
PRODUCT_ID_15 = 0x0060      # 96: 15-key (3x5) original model

# =========================================================================
# Key identifiers
# =========================================================================
# Logical keys are 0..N-1, left-to-right/top-to-bottom as seen by the user.
# The two sentinels sit above every valid logical index.
GLOBAL_KEY = 255            # handler slot for "all keys"
INVALID_KEY = 254           # translation result for values with no key

# =========================================================================
# Input reports (device -> host)
# =========================================================================
INPUT_REPORT_LENGTH = 16    # report id + one state byte per native key
REPORT_KEY_STATE = 0x01     # byte 0 of a key-state report
KEY_PRESSED = 0x01

# =========================================================================
# Feature reports (host -> device)
# =========================================================================
RESET_COMMAND = bytes([0x0B, 0x63])

# =========================================================================
# Image transfer (host -> device)
# =========================================================================
KEY_IMAGE_SIZE = 72                 # square canvas, pixels per side
BYTES_PER_PIXEL = 3                 # B, G, R
PAGE1_PIXELS = 2583                 # pixels carried by page 1
KEY_ID_OFFSET = 5                   # key id byte in both page headers

# Page 1: report header followed by a BMP file/info header the firmware
# expects (0x42 0x4D = "BM", 72x72, 24 bpp).  Offset 5 holds the key id.
PAGE1_HEADER = bytes([
    0x02, 0x01, 0x01, 0x00, 0x00, 0x00, 0x00, 0x00,
    0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
    0x42, 0x4D, 0xF6, 0x3C, 0x00, 0x00, 0x00, 0x00,
    0x00, 0x00, 0x36, 0x00, 0x00, 0x00, 0x28, 0x00,
    0x00, 0x00, 0x48, 0x00, 0x00, 0x00, 0x48, 0x00,
    0x00, 0x00, 0x01, 0x00, 0x18, 0x00, 0x00, 0x00,
    0x00, 0x00, 0xC0, 0x3C, 0x00, 0x00, 0xC4, 0x0E,
    0x00, 0x00, 0xC4, 0x0E, 0x00, 0x00, 0x00, 0x00,
    0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
])

# Page 2: report header with page number 2 and continuation flag set.
PAGE2_HEADER = bytes([
    0x02, 0x01, 0x02, 0x00, 0x01, 0x00, 0x00, 0x00,
    0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
])

# Read timeout used by the CLI polling loop (ms)
DEFAULT_POLL_TIMEOUT_MS = 100
