"""
Key layouts — logical/native key translation and per-model protocol data.

A ``KeyLayout`` bundles everything that differs between keypad models:
grid shape, canvas size, reset command and image page headers.  The
keypad session picks one at discovery time and never looks at the
model again.

Logical keys count left-to-right, top-to-bottom.  The 15-key model scans
each row right-to-left, so its native ids are the logical ids with every
row reversed::

    logical         native
     0  1  2  3  4   4  3  2  1  0
     5  6  7  8  9   9  8  7  6  5
    10 11 12 13 14  14 13 12 11 10
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from .constants import (
    BYTES_PER_PIXEL,
    INPUT_REPORT_LENGTH,
    INVALID_KEY,
    KEY_ID_OFFSET,
    KEY_IMAGE_SIZE,
    PAGE1_HEADER,
    PAGE1_PIXELS,
    PAGE2_HEADER,
    PRODUCT_ID_15,
    RESET_COMMAND,
)


def translate(value: int, columns: int, key_count: int) -> int:
    """Map a logical key to its native id, or a native id to its logical key.

    Reverses the position of *value* within its row.  The mapping is its
    own inverse, so the same call serves both directions.  Values with no
    key behind them map to ``INVALID_KEY``.
    """
    if not 0 <= value < key_count:
        return INVALID_KEY
    column = value % columns
    return (value - column) + (columns - 1 - column)


@dataclass(frozen=True)
class KeyLayout:
    """Protocol strategy for one keypad model."""
    name: str
    product_id: int
    rows: int
    columns: int
    key_size: int = KEY_IMAGE_SIZE
    reset_command: bytes = RESET_COMMAND
    report_length: int = INPUT_REPORT_LENGTH
    page1_pixels: int = PAGE1_PIXELS
    page1_header: bytes = PAGE1_HEADER
    page2_header: bytes = PAGE2_HEADER

    @property
    def key_count(self) -> int:
        return self.rows * self.columns

    @property
    def canvas_size(self) -> Tuple[int, int]:
        """(width, height) of one key image."""
        return (self.key_size, self.key_size)

    @property
    def image_bytes(self) -> int:
        """Length of a full pixel buffer."""
        return self.key_size * self.key_size * BYTES_PER_PIXEL

    @property
    def page1_bytes(self) -> int:
        """Pixel buffer bytes carried by page 1; page 2 takes the rest."""
        return self.page1_pixels * BYTES_PER_PIXEL

    def is_valid_key(self, key: int) -> bool:
        return 0 <= key < self.key_count

    def translate(self, value: int) -> int:
        """Logical key <-> native id (self-inverse)."""
        return translate(value, self.columns, self.key_count)

    def page_headers(self, native_id: int) -> Tuple[bytes, bytes]:
        """Build both page headers for the key with native id *native_id*.

        The device numbers key images from 1, so the header carries
        ``native_id + 1``.
        """
        image_id = native_id + 1
        headers = []
        for template in (self.page1_header, self.page2_header):
            header = bytearray(template)
            header[KEY_ID_OFFSET] = image_id
            headers.append(bytes(header))
        return headers[0], headers[1]


STREAMDECK_15 = KeyLayout(
    name="Stream Deck (15 keys)",
    product_id=PRODUCT_ID_15,
    rows=3,
    columns=5,
)

LAYOUTS_BY_PRODUCT_ID: Dict[int, KeyLayout] = {
    STREAMDECK_15.product_id: STREAMDECK_15,
}


def layout_for_product(product_id: int) -> KeyLayout:
    """Return the layout for *product_id*.

    Raises:
        KeyError: If the product id has no known layout.
    """
    return LAYOUTS_BY_PRODUCT_ID[product_id]
