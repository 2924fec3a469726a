"""
Keypad session — handler registry, key images and event dispatch.

Keys are zero-based, left-to-right, top-to-bottom.  All operations are
synchronous and run on the calling thread; a session is not safe for
concurrent use without external locking.

Usage::

    from keydeck import open_keypad

    with open_keypad() as deck:
        deck.reset()
        deck.set_key_image(0, "play.png")
        deck.set_key_handler(0, lambda key: print("pressed", key) or True)
        while True:
            deck.process_events(-1)
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from .constants import GLOBAL_KEY, INVALID_KEY, KEY_PRESSED, REPORT_KEY_STATE
from .device_detector import find_keypads
from .errors import DeckIOError, InvalidKeyError, NoDevicesError, UnknownDeviceError
from .hid_device import BACKEND_HIDAPI, HidTransport, create_transport
from .image_codec import ImageSource, build_pages, encode_source
from .key_layout import STREAMDECK_15, KeyLayout

log = logging.getLogger(__name__)

# Called with the key id of its slot: the logical key for per-key handlers,
# GLOBAL_KEY for the global one.  Return False to be removed after this
# call, True to stay registered.
KeyHandler = Callable[[int], bool]

# Receives human-readable diagnostics (e.g. unexpected reports).
DiagnosticHook = Callable[[str], None]


class Keypad:
    """An open keypad session.

    Owns the transport exclusively.  The layout supplies everything
    model-specific (key translation, canvas, page headers, reset command).

    Args:
        transport: Open HID transport.
        layout: Protocol strategy for the connected model.
        on_diagnostic: Optional sink for non-fatal diagnostics; they are
            logged either way.
        serial: Device serial number, informational.
    """

    def __init__(self, transport: HidTransport, layout: KeyLayout = STREAMDECK_15,
                 on_diagnostic: Optional[DiagnosticHook] = None, serial: str = ""):
        self._transport = transport
        self._layout = layout
        self._handlers: Dict[int, KeyHandler] = {}
        self.on_diagnostic = on_diagnostic
        self.serial = serial

    # -- Properties ----------------------------------------------------

    @property
    def layout(self) -> KeyLayout:
        return self._layout

    @property
    def key_count(self) -> int:
        return self._layout.key_count

    @property
    def transport(self) -> HidTransport:
        return self._transport

    # -- Device control --------------------------------------------------

    def reset(self) -> None:
        """Restore the factory display state."""
        try:
            self._transport.write_feature(self._layout.reset_command)
        except OSError as e:
            raise DeckIOError("failed to reset device") from e
        log.debug("Reset sent")

    # -- Handlers ----------------------------------------------------------

    def set_global_key_handler(self, fn: KeyHandler) -> None:
        """Set the handler called with ``GLOBAL_KEY`` for every key press, before the key's own."""
        self._handlers[GLOBAL_KEY] = fn

    def clear_global_key_handler(self) -> None:
        self._handlers.pop(GLOBAL_KEY, None)

    def set_key_handler(self, key: int, fn: KeyHandler) -> None:
        """Set the handler for *key*, replacing any existing one."""
        self._check_key(key)
        self._handlers[key] = fn

    def clear_key_handler(self, key: int) -> None:
        self._check_key(key)
        self._handlers.pop(key, None)

    def has_key_handler(self, key: int) -> bool:
        """Whether *key* (or ``GLOBAL_KEY``) has a registered handler."""
        return key in self._handlers

    # -- Images ------------------------------------------------------------

    def set_key_image(self, key: int, source: ImageSource = None) -> None:
        """Show an image on *key*.

        Args:
            key: Logical key index.
            source: Path to a 72x72 PNG, an already decoded PIL image, or
                None for a blank key.

        Raises:
            InvalidKeyError: If *key* is out of range.
            InvalidImageError: If the image is not a PNG of the right size.
            DeckIOError: If either page write fails (not retried).
        """
        self._check_key(key)
        native_id = self._layout.translate(key)
        buffer = encode_source(source, self._layout)
        for number, page in enumerate(build_pages(self._layout, native_id, buffer), 1):
            self._write_page(number, page)
        log.debug("Key %d (native %d) image updated", key, native_id)

    def clear_key_image(self, key: int) -> None:
        """Blank *key*."""
        self.set_key_image(key, None)

    def clear_all_images(self) -> None:
        for key in range(self.key_count):
            self.clear_key_image(key)

    def _write_page(self, number: int, page: bytes) -> None:
        try:
            self._transport.write(page)
        except OSError as e:
            raise DeckIOError(f"failed to write page {number}") from e

    # -- Events ------------------------------------------------------------

    def process_events(self, timeout_ms: int = 0) -> int:
        """Read one input report and dispatch its key presses.

        Args:
            timeout_ms: 0 never blocks, negative blocks until a report
                arrives, positive waits at most that long.

        Returns:
            Number of pressed keys in the report (0 if nothing arrived).

        Raises:
            DeckIOError: If the read fails.
        """
        try:
            report = self._transport.read(self._layout.report_length, timeout_ms)
        except OSError as e:
            raise DeckIOError("error reading key press") from e

        if not report:
            return 0

        report_type = report[0]
        if report_type != REPORT_KEY_STATE:
            self._diagnostic(f"Ignoring unexpected report from device: {report_type}")
            return 0

        presses = 0
        for native_id, state in enumerate(report[1:]):
            if state != KEY_PRESSED:
                continue
            key = self._layout.translate(native_id)
            if key == INVALID_KEY:
                log.debug("Press on native id %d has no key, ignored", native_id)
                continue
            presses += 1
            self._dispatch(GLOBAL_KEY)
            self._dispatch(key)
        return presses

    def _dispatch(self, slot: int) -> None:
        """Call the handler in *slot* with *slot*, dropping it if it returns False.

        The global handler therefore receives ``GLOBAL_KEY``, per-key handlers
        their logical key.
        """
        handler = self._handlers.get(slot)
        if handler is None:
            return
        if not handler(slot):
            # A handler may have installed its own replacement
            if self._handlers.get(slot) is handler:
                del self._handlers[slot]
                log.debug("Handler for slot %d removed", slot)

    def _diagnostic(self, message: str) -> None:
        log.warning(message)
        if self.on_diagnostic:
            self.on_diagnostic(message)

    def _check_key(self, key: int) -> None:
        if not self._layout.is_valid_key(key):
            raise InvalidKeyError(key, self._layout.key_count)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Release the transport."""
        self._transport.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self) -> str:
        return f"Keypad(layout={self._layout.name!r}, transport={self._transport!r})"


def open_keypad(serial: Optional[str] = None, backend: str = BACKEND_HIDAPI,
                on_diagnostic: Optional[DiagnosticHook] = None) -> Keypad:
    """Open the first keypad found.

    Args:
        serial: Only consider the device with this serial number.
        backend: ``"hidapi"`` or ``"pyusb"``.
        on_diagnostic: Passed to the ``Keypad``.

    Raises:
        NoDevicesError: If no device from the vendor is present.
        UnknownDeviceError: If the first device has an unsupported product id.
        DeckIOError: If the device cannot be opened.
    """
    devices = find_keypads(backend)
    if serial:
        devices = [d for d in devices if d.serial == serial]

    for dev in devices:
        layout = dev.layout
        if layout is None:
            raise UnknownDeviceError(f"unknown device {dev.usb_id}")

        transport = create_transport(backend, dev.vid, dev.pid,
                                     serial=dev.serial or None, path=dev.path)
        try:
            transport.open()
        except OSError as e:
            transport.close()
            raise DeckIOError(f"failed to open device {dev.usb_id}") from e

        log.info("Opened %s (%s)", layout.name, dev.serial or "no serial")
        return Keypad(transport, layout, on_diagnostic=on_diagnostic,
                      serial=dev.serial)

    raise NoDevicesError()
