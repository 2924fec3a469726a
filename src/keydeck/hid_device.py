#!/usr/bin/env python3
"""
HID transport layer for the keypad.

The keypad is a plain USB HID device: images go out as numbered output
reports, the reset command as a feature report, and key states come back
as 16-byte input reports.

The ``HidTransport`` ABC abstracts the raw report I/O so that:
  • Tests can inject a mock transport (no real hardware needed).
  • ``HidApiTransport`` provides real I/O via hidapi (OS HID driver).
  • ``PyUsbTransport`` provides an alternative via pyusb (libusb backend),
    issuing HID class requests directly.

Linux dependencies:
  • hidapi: ``pip install hidapi`` (needs libhidapi — ``apt install libhidapi-hidraw0``)
  • pyusb:  ``pip install pyusb``  (needs libusb1 — ``apt install libusb-1.0-0``)
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import hid as hidapi
import usb.core
import usb.util

log = logging.getLogger(__name__)


# =========================================================================
# Constants (USB HID class specification, section 7.2)
# =========================================================================

USB_INTERFACE = 0

# bmRequestType: host-to-device | class | interface
HID_REQUEST_TYPE_OUT = 0x21
HID_SET_REPORT = 0x09

# Report types for wValue high byte
HID_REPORT_TYPE_OUTPUT = 0x02
HID_REPORT_TYPE_FEATURE = 0x03

# Timeout (ms) for output/feature report writes
WRITE_TIMEOUT_MS = 1000

BACKEND_HIDAPI = "hidapi"
BACKEND_PYUSB = "pyusb"
BACKENDS = (BACKEND_HIDAPI, BACKEND_PYUSB)


# =========================================================================
# Abstract HID transport
# =========================================================================

class HidTransport(ABC):
    """Abstract HID report transport — mockable for testing.

    Every I/O failure surfaces as ``OSError`` (or a subclass); the
    keypad wraps it with operation context.
    """

    @abstractmethod
    def open(self) -> None:
        """Open the device."""

    @abstractmethod
    def close(self) -> None:
        """Release the device."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Send an output report (``data[0]`` is the report id).  Returns bytes sent."""

    @abstractmethod
    def write_feature(self, data: bytes) -> int:
        """Send a feature report (``data[0]`` is the report id).  Returns bytes sent."""

    @abstractmethod
    def read(self, length: int, timeout_ms: int) -> bytes:
        """Read one input report.

        ``timeout_ms == 0`` never blocks, a negative value blocks until a
        report arrives, a positive value bounds the wait.  Returns
        ``b''`` when nothing arrived in time.
        """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the device is currently open."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


# =========================================================================
# Real transport: HIDAPI
# =========================================================================

class HidApiTransport(HidTransport):
    """HID transport using HIDAPI (hidapi library).

    Opens by enumeration path when one is known (distinguishes two
    identical keypads), otherwise by VID/PID/serial.

    Requires: ``pip install hidapi`` + ``apt install libhidapi-hidraw0``
    """

    def __init__(self, vid: int, pid: int, serial: Optional[str] = None,
                 path: Optional[bytes] = None):
        self._vid = vid
        self._pid = pid
        self._serial = serial
        self._path = path
        self._device: Any = None
        self._nonblocking: Optional[bool] = None

    def open(self) -> None:
        """Open HID device by path or VID/PID."""
        device = hidapi.device()
        if self._path is not None:
            device.open_path(self._path)
        else:
            device.open(self._vid, self._pid, self._serial)
        self._device = device
        self._nonblocking = None
        log.debug("Opened HID device %04x:%04x", self._vid, self._pid)

    def close(self) -> None:
        """Close HID device."""
        if self._device is not None:
            self._device.close()
            self._device = None
            log.debug("Closed HID device %04x:%04x", self._vid, self._pid)

    def _require_open(self) -> Any:
        if self._device is None:
            raise OSError("Transport not open")
        return self._device

    def write(self, data: bytes) -> int:
        """Write an output report.

        hidapi takes the report id as the first byte, which the page
        headers already carry.
        """
        written = self._require_open().write(bytes(data))
        if written < 0:
            raise OSError(f"HID write failed ({len(data)} bytes)")
        return written

    def write_feature(self, data: bytes) -> int:
        written = self._require_open().send_feature_report(bytes(data))
        if written < 0:
            raise OSError(f"HID feature report failed ({len(data)} bytes)")
        return written

    def _set_nonblocking(self, device: Any, enabled: bool) -> None:
        if self._nonblocking != enabled:
            device.set_nonblocking(1 if enabled else 0)
            self._nonblocking = enabled

    def read(self, length: int, timeout_ms: int) -> bytes:
        """Read an input report.

        hidapi's ``read(n, 0)`` falls back to the device's blocking mode,
        so zero and negative timeouts are expressed through it.
        """
        device = self._require_open()
        if timeout_ms > 0:
            data = device.read(length, timeout_ms)
        else:
            self._set_nonblocking(device, timeout_ms == 0)
            data = device.read(length)
        return bytes(data) if data else b''

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def __repr__(self) -> str:
        return f"HidApiTransport(vid=0x{self._vid:04x}, pid=0x{self._pid:04x})"


# =========================================================================
# Real transport: PyUSB  (libusb backend)
# =========================================================================
# HID over raw USB:
#   output/feature reports → SET_REPORT control transfer on EP0
#   input reports          → interrupt IN endpoint

class PyUsbTransport(HidTransport):
    """HID transport using pyusb (libusb backend).

    Detaches the kernel hid driver while open, so the keypad is not
    visible to other applications meanwhile.

    Requires: ``pip install pyusb`` + ``apt install libusb-1.0-0``
    """

    def __init__(self, vid: int, pid: int, serial: Optional[str] = None):
        self._vid = vid
        self._pid = pid
        self._serial = serial
        self._device: Any = None
        self._ep_in: Any = None
        self._detached = False

    def open(self) -> None:
        """Find USB device, claim interface, and locate the IN endpoint."""
        kwargs: dict = {'idVendor': self._vid, 'idProduct': self._pid}
        if self._serial:
            kwargs['serial_number'] = self._serial

        device = usb.core.find(**kwargs)
        if device is None:
            raise OSError(
                f"USB device not found: VID={self._vid:#06x} PID={self._pid:#06x}"
            )

        if device.is_kernel_driver_active(USB_INTERFACE):
            device.detach_kernel_driver(USB_INTERFACE)
            self._detached = True
            log.debug("Detached kernel driver from interface %d", USB_INTERFACE)

        try:
            usb.util.claim_interface(device, USB_INTERFACE)
            cfg = device.get_active_configuration()
            intf = cfg[(USB_INTERFACE, 0)]
            ep_in = usb.util.find_descriptor(
                intf,
                custom_match=lambda e: usb.util.endpoint_direction(
                    e.bEndpointAddress
                ) == usb.util.ENDPOINT_IN,
            )
            if ep_in is None:
                raise OSError("No interrupt IN endpoint on keypad interface")
        except Exception:
            self._release(device)
            raise

        self._device = device
        self._ep_in = ep_in
        log.debug("Opened USB device %04x:%04x IN=0x%02x",
                  self._vid, self._pid, ep_in.bEndpointAddress)

    def close(self) -> None:
        """Release interface and reattach the kernel driver."""
        if self._device is None:
            return
        device, self._device = self._device, None
        self._release(device)

    def _release(self, device: Any) -> None:
        """Give the interface back to the kernel; also undoes a partial open."""
        try:
            usb.util.release_interface(device, USB_INTERFACE)
        except usb.core.USBError as e:
            log.debug("USB release: %s", e)
        try:
            if self._detached:
                device.attach_kernel_driver(USB_INTERFACE)
        except usb.core.USBError as e:
            log.warning("Could not reattach kernel driver: %s", e)
        finally:
            usb.util.dispose_resources(device)
            self._detached = False
            self._ep_in = None

    def _require_open(self) -> Any:
        if self._device is None:
            raise OSError("Transport not open")
        return self._device

    def _set_report(self, report_type: int, data: bytes) -> int:
        device = self._require_open()
        report_id = data[0] if data else 0
        return device.ctrl_transfer(
            HID_REQUEST_TYPE_OUT,
            HID_SET_REPORT,
            (report_type << 8) | report_id,
            USB_INTERFACE,
            bytes(data),
            WRITE_TIMEOUT_MS,
        )

    def write(self, data: bytes) -> int:
        return self._set_report(HID_REPORT_TYPE_OUTPUT, data)

    def write_feature(self, data: bytes) -> int:
        return self._set_report(HID_REPORT_TYPE_FEATURE, data)

    def read(self, length: int, timeout_ms: int) -> bytes:
        """Interrupt read.

        libusb treats a zero timeout as "forever", so a non-blocking read
        becomes a 1 ms poll and a blocking read a zero timeout.
        """
        self._require_open()
        if timeout_ms < 0:
            timeout = 0
        else:
            timeout = max(timeout_ms, 1)
        try:
            data = self._ep_in.read(self._ep_in.wMaxPacketSize, timeout)
        except usb.core.USBTimeoutError:
            return b''
        return bytes(data[:length])

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def __repr__(self) -> str:
        return f"PyUsbTransport(vid=0x{self._vid:04x}, pid=0x{self._pid:04x})"


def create_transport(backend: str, vid: int, pid: int,
                     serial: Optional[str] = None,
                     path: Optional[bytes] = None) -> HidTransport:
    """Create an (unopened) transport for *backend*."""
    if backend == BACKEND_HIDAPI:
        return HidApiTransport(vid, pid, serial=serial, path=path)
    if backend == BACKEND_PYUSB:
        return PyUsbTransport(vid, pid, serial=serial)
    raise ValueError(f"Unknown transport backend: {backend!r} (choose from {BACKENDS})")
