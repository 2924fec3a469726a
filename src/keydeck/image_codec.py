"""Key image encoding — PNG → native pixel buffer → two protocol pages.

The keypad expects 24-bit BGR pixels with every scanline mirrored
(rightmost pixel first), split over two output reports.  Page 1 carries
a BMP-style header the firmware parses; page 2 carries the remainder.

Pure Python (PIL + numpy), no transport dependencies.
"""
from __future__ import annotations

import logging
import os
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import InvalidImageError
from .key_layout import KeyLayout

log = logging.getLogger(__name__)

# Key images are tiny; refuse to decode anything larger than this.
MAX_SOURCE_PIXELS = 1024 * 1024

ImageSource = Union[str, os.PathLike, Image.Image, None]


def load_key_image(path: Union[str, os.PathLike]) -> Image.Image:
    """Decode a PNG file into a fully loaded PIL image.

    Raises:
        InvalidImageError: If the file is not a PNG or is implausibly large.
        OSError: If the file cannot be read.
    """
    try:
        img = Image.open(path)
    except UnidentifiedImageError as e:
        raise InvalidImageError(f"cannot decode image {path}: {e}") from e
    if img.format != 'PNG':
        img.close()
        raise InvalidImageError(
            f"unsupported image format {img.format!r} for {path} (PNG only)"
        )
    if img.width * img.height > MAX_SOURCE_PIXELS:
        size = img.size
        img.close()
        raise InvalidImageError(f"image {path} too large: {size[0]}x{size[1]}")
    img.load()
    log.debug("Loaded %s (%dx%d %s)", path, img.width, img.height, img.mode)
    return img


def _flatten(image: Image.Image) -> Image.Image:
    """Return an RGB copy with any transparency composited over black."""
    if image.mode in ('RGBA', 'LA', 'PA') or 'transparency' in image.info:
        rgba = image.convert('RGBA')
        flat = Image.new('RGB', rgba.size, (0, 0, 0))
        flat.paste(rgba, (0, 0), rgba)
        return flat
    if image.mode != 'RGB':
        return image.convert('RGB')
    return image


def pixel_buffer(image: Optional[Image.Image], layout: KeyLayout) -> bytes:
    """Encode *image* as the device-native pixel buffer.

    ``None`` produces a blank (black) canvas.  Each scanline is emitted
    from x = width down to x = 1: the first position lies past the right
    edge and comes out black, and column 0 is never sent.  The buffer
    length is always ``width * height * 3``.

    Raises:
        InvalidImageError: If the image size differs from the key canvas.
    """
    if image is None:
        return bytes(layout.image_bytes)

    if image.size != layout.canvas_size:
        w, h = layout.canvas_size
        raise InvalidImageError(
            f"key image must be {w}x{h}, got {image.width}x{image.height}"
        )

    rgb = np.asarray(_flatten(image), dtype=np.uint8)
    mirrored = rgb[:, ::-1, :]
    scan = np.zeros_like(rgb)
    scan[:, 1:, :] = mirrored[:, :-1, :]
    # TODO: confirm against hardware whether column 0 should be sent and
    # the off-edge black column dropped (one-pixel shift).
    return np.ascontiguousarray(scan[:, :, ::-1]).tobytes()


def encode_source(source: ImageSource, layout: KeyLayout) -> bytes:
    """Pixel buffer for a path, a decoded image, or ``None`` (blank)."""
    if source is None or isinstance(source, Image.Image):
        return pixel_buffer(source, layout)
    with load_key_image(source) as img:
        return pixel_buffer(img, layout)


def build_pages(layout: KeyLayout, native_id: int, buffer: bytes) -> Tuple[bytes, bytes]:
    """Split *buffer* into the two output reports for key *native_id*.

    Returns ``(page1, page2)``; each is header + payload, ready for a
    single transport write.

    Raises:
        ValueError: If *buffer* is not a full canvas.
    """
    if len(buffer) != layout.image_bytes:
        raise ValueError(
            f"pixel buffer is {len(buffer)} bytes, expected {layout.image_bytes}"
        )
    header1, header2 = layout.page_headers(native_id)
    split = layout.page1_bytes
    return header1 + buffer[:split], header2 + buffer[split:]
