"""Shared fixtures: an in-memory HID transport and an isolated config dir."""
from typing import List, Optional

import pytest

from keydeck import conf
from keydeck.hid_device import HidTransport
from keydeck.key_layout import STREAMDECK_15
from keydeck.keypad import Keypad


class FakeTransport(HidTransport):
    """Records writes and serves queued input reports."""

    def __init__(self, reports: Optional[List[bytes]] = None):
        self.writes: List[bytes] = []
        self.features: List[bytes] = []
        self.reports: List[bytes] = list(reports or [])
        self.reads: List[tuple] = []
        self.fail_write_on: Optional[int] = None  # 1-based write number
        self.fail_read = False
        self.fail_feature = False
        self._open = True

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    def write(self, data: bytes) -> int:
        self.writes.append(bytes(data))
        if self.fail_write_on == len(self.writes):
            raise OSError("broken pipe")
        return len(data)

    def write_feature(self, data: bytes) -> int:
        if self.fail_feature:
            raise OSError("feature report rejected")
        self.features.append(bytes(data))
        return len(data)

    def read(self, length: int, timeout_ms: int) -> bytes:
        self.reads.append((length, timeout_ms))
        if self.fail_read:
            raise OSError("device disconnected")
        return self.reports.pop(0) if self.reports else b''

    @property
    def is_open(self) -> bool:
        return self._open


def key_report(*native_ids: int, report_type: int = 1) -> bytes:
    """16-byte input report with the given native keys pressed."""
    report = bytearray(16)
    report[0] = report_type
    for native_id in native_ids:
        report[1 + native_id] = 1
    return bytes(report)


@pytest.fixture
def make_report():
    return key_report


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def deck(transport):
    return Keypad(transport, STREAMDECK_15)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Point conf at a temporary config file."""
    monkeypatch.setattr(conf, 'CONFIG_DIR', str(tmp_path))
    monkeypatch.setattr(conf, 'CONFIG_PATH', str(tmp_path / 'config.json'))
    return tmp_path
