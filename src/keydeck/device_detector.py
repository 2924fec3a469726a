#!/usr/bin/env python3
"""
Keypad detector.

Enumerates USB HID devices from the keypad vendor and resolves each
product id to a ``KeyLayout``.

Supported devices:
- Elgato Stream Deck (15 keys): VID=0x0FD9, PID=0x0060
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import hid as hidapi
import usb.core
import usb.util

from .constants import VENDOR_ID
from .hid_device import BACKEND_HIDAPI, BACKEND_PYUSB
from .key_layout import LAYOUTS_BY_PRODUCT_ID, KeyLayout

log = logging.getLogger(__name__)


@dataclass
class DetectedKeypad:
    """Detected keypad (or other device from the same vendor)."""
    vid: int
    pid: int
    serial: str = ""
    product: str = ""
    path: Optional[bytes] = None  # hidapi path; None for pyusb
    backend: str = BACKEND_HIDAPI

    @property
    def layout(self) -> Optional[KeyLayout]:
        """Layout for this product id, or None if unsupported."""
        return LAYOUTS_BY_PRODUCT_ID.get(self.pid)

    @property
    def supported(self) -> bool:
        return self.layout is not None

    @property
    def usb_id(self) -> str:
        """``vid-pid`` in decimal, as used in error messages."""
        return f"{self.vid}-{self.pid}"


def _find_hidapi(vid: int) -> List[DetectedKeypad]:
    found = []
    for info in hidapi.enumerate(vid, 0):
        found.append(DetectedKeypad(
            vid=info.get('vendor_id', vid),
            pid=info.get('product_id', 0),
            serial=info.get('serial_number') or "",
            product=info.get('product_string') or "",
            path=info.get('path'),
            backend=BACKEND_HIDAPI,
        ))
    return found


def _find_pyusb(vid: int) -> List[DetectedKeypad]:
    found = []
    for dev in usb.core.find(find_all=True, idVendor=vid) or []:
        serial = ""
        product = ""
        try:
            if dev.iSerialNumber:
                serial = usb.util.get_string(dev, dev.iSerialNumber) or ""
            if dev.iProduct:
                product = usb.util.get_string(dev, dev.iProduct) or ""
        except (usb.core.USBError, ValueError) as e:
            # String descriptors need device access (udev rules)
            log.debug("Cannot read strings for %04x:%04x: %s",
                      dev.idVendor, dev.idProduct, e)
        found.append(DetectedKeypad(
            vid=dev.idVendor,
            pid=dev.idProduct,
            serial=serial,
            product=product,
            backend=BACKEND_PYUSB,
        ))
    return found


def find_keypads(backend: str = BACKEND_HIDAPI, vid: int = VENDOR_ID) -> List[DetectedKeypad]:
    """Enumerate every device from *vid*, supported or not.

    hidapi may list one entry per HID interface; duplicates by path are
    collapsed.
    """
    if backend == BACKEND_PYUSB:
        devices = _find_pyusb(vid)
    elif backend == BACKEND_HIDAPI:
        devices = _find_hidapi(vid)
    else:
        raise ValueError(f"Unknown transport backend: {backend!r}")

    unique: List[DetectedKeypad] = []
    seen = set()
    for dev in devices:
        key = dev.path if dev.path is not None else id(dev)
        if key in seen:
            continue
        seen.add(key)
        unique.append(dev)

    log.debug("Found %d device(s) for vendor 0x%04x via %s",
              len(unique), vid, backend)
    return unique


def format_keypad(dev: DetectedKeypad) -> str:
    """One-line description for CLI listings."""
    name = dev.layout.name if dev.layout else (dev.product or "unsupported device")
    serial = f" serial={dev.serial}" if dev.serial else ""
    return f"[{dev.vid:04x}:{dev.pid:04x}] {name}{serial}"
