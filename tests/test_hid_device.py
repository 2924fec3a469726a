"""Mock tests for the HID transports.

No real USB hardware required — the hidapi device and pyusb handles are
MagicMocks.
"""

from unittest.mock import MagicMock, patch

import pytest
import usb.core

from keydeck.hid_device import (
    HID_REPORT_TYPE_FEATURE,
    HID_REPORT_TYPE_OUTPUT,
    HID_REQUEST_TYPE_OUT,
    HID_SET_REPORT,
    USB_INTERFACE,
    WRITE_TIMEOUT_MS,
    HidApiTransport,
    HidTransport,
    PyUsbTransport,
    create_transport,
)

VID = 0x0FD9
PID = 0x0060


# =========================================================================
# HidApiTransport
# =========================================================================

@pytest.fixture
def mock_hidapi():
    with patch('keydeck.hid_device.hidapi') as m:
        yield m


def _open_hidapi(mock_hidapi, **kwargs) -> tuple:
    transport = HidApiTransport(VID, PID, **kwargs)
    transport.open()
    return transport, mock_hidapi.device.return_value


class TestHidApiOpen:

    def test_open_by_path(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi, path=b'/dev/hidraw2')
        device.open_path.assert_called_once_with(b'/dev/hidraw2')
        device.open.assert_not_called()
        assert transport.is_open

    def test_open_by_ids(self, mock_hidapi):
        _, device = _open_hidapi(mock_hidapi, serial="AL1")
        device.open.assert_called_once_with(VID, PID, "AL1")

    def test_open_failure_propagates(self, mock_hidapi):
        mock_hidapi.device.return_value.open.side_effect = OSError("open failed")
        transport = HidApiTransport(VID, PID)
        with pytest.raises(OSError):
            transport.open()
        assert not transport.is_open

    def test_close(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        transport.close()
        device.close.assert_called_once()
        assert not transport.is_open
        transport.close()  # idempotent
        device.close.assert_called_once()

    def test_context_manager(self, mock_hidapi):
        with HidApiTransport(VID, PID) as transport:
            assert transport.is_open
        assert not transport.is_open


class TestHidApiIO:

    def test_write_passes_report_id_through(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.write.return_value = 5
        assert transport.write(b'\x02\x01\x01\x00\x00') == 5
        device.write.assert_called_once_with(b'\x02\x01\x01\x00\x00')

    def test_write_error(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.write.return_value = -1
        with pytest.raises(OSError):
            transport.write(b'\x02')

    def test_feature_report(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.send_feature_report.return_value = 2
        assert transport.write_feature(b'\x0b\x63') == 2
        device.send_feature_report.assert_called_once_with(b'\x0b\x63')

    def test_feature_error(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.send_feature_report.return_value = -1
        with pytest.raises(OSError):
            transport.write_feature(b'\x0b\x63')

    def test_read_bounded(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.read.return_value = [1, 0, 1] + [0] * 13
        assert transport.read(16, 250) == bytes([1, 0, 1] + [0] * 13)
        device.read.assert_called_once_with(16, 250)
        device.set_nonblocking.assert_not_called()

    def test_read_nonblocking(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.read.return_value = []
        assert transport.read(16, 0) == b''
        device.set_nonblocking.assert_called_once_with(1)
        device.read.assert_called_once_with(16)

    def test_read_blocking(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.read.return_value = [1] + [0] * 15
        transport.read(16, -1)
        device.set_nonblocking.assert_called_once_with(0)
        device.read.assert_called_once_with(16)

    def test_nonblocking_mode_only_set_on_change(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.read.return_value = []
        transport.read(16, 0)
        transport.read(16, 0)
        transport.read(16, -1)
        assert [c.args for c in device.set_nonblocking.call_args_list] == [(1,), (0,)]

    def test_read_error_propagates(self, mock_hidapi):
        transport, device = _open_hidapi(mock_hidapi)
        device.read.side_effect = OSError("read error")
        with pytest.raises(OSError):
            transport.read(16, 100)

    def test_io_when_closed(self):
        transport = HidApiTransport(VID, PID)
        with pytest.raises(OSError, match="not open"):
            transport.write(b'\x02')
        with pytest.raises(OSError, match="not open"):
            transport.read(16, 0)
        with pytest.raises(OSError, match="not open"):
            transport.write_feature(b'\x0b\x63')


# =========================================================================
# PyUsbTransport
# =========================================================================

def _pyusb_transport() -> tuple:
    """PyUsbTransport with a mocked device and IN endpoint already attached."""
    transport = PyUsbTransport(VID, PID)
    device = MagicMock()
    ep_in = MagicMock(bEndpointAddress=0x81, wMaxPacketSize=64)
    transport._device = device
    transport._ep_in = ep_in
    return transport, device, ep_in


class TestPyUsbIO:

    def test_output_report_via_set_report(self):
        transport, device, _ = _pyusb_transport()
        device.ctrl_transfer.return_value = 3
        assert transport.write(b'\x02\x01\x02') == 3
        device.ctrl_transfer.assert_called_once_with(
            HID_REQUEST_TYPE_OUT, HID_SET_REPORT,
            (HID_REPORT_TYPE_OUTPUT << 8) | 0x02,
            USB_INTERFACE, b'\x02\x01\x02', WRITE_TIMEOUT_MS,
        )

    def test_feature_report_via_set_report(self):
        transport, device, _ = _pyusb_transport()
        transport.write_feature(b'\x0b\x63')
        args = device.ctrl_transfer.call_args.args
        assert args[0] == 0x21
        assert args[1] == 0x09
        assert args[2] == 0x030B
        assert HID_REPORT_TYPE_FEATURE == 0x03

    def test_read_truncates_to_report(self):
        transport, _, ep_in = _pyusb_transport()
        ep_in.read.return_value = [1, 1] + [0] * 62
        assert transport.read(16, 100) == bytes([1, 1] + [0] * 14)
        ep_in.read.assert_called_once_with(64, 100)

    @pytest.mark.parametrize("timeout_ms,expected", [(0, 1), (-1, 0), (500, 500)])
    def test_read_timeout_mapping(self, timeout_ms, expected):
        transport, _, ep_in = _pyusb_transport()
        ep_in.read.return_value = []
        transport.read(16, timeout_ms)
        assert ep_in.read.call_args.args[1] == expected

    def test_read_timeout_returns_empty(self):
        transport, _, ep_in = _pyusb_transport()
        ep_in.read.side_effect = usb.core.USBTimeoutError("timeout")
        assert transport.read(16, 10) == b''

    def test_usb_error_is_oserror(self):
        transport, _, ep_in = _pyusb_transport()
        ep_in.read.side_effect = usb.core.USBError("pipe error")
        with pytest.raises(OSError):
            transport.read(16, 10)

    def test_io_when_closed(self):
        transport = PyUsbTransport(VID, PID)
        with pytest.raises(OSError, match="not open"):
            transport.write(b'\x02')
        with pytest.raises(OSError, match="not open"):
            transport.read(16, 0)


class TestPyUsbOpen:

    @patch('keydeck.hid_device.usb.core.find', return_value=None)
    def test_not_found(self, mock_find):
        transport = PyUsbTransport(VID, PID, serial="AL1")
        with pytest.raises(OSError, match="not found"):
            transport.open()
        mock_find.assert_called_once_with(idVendor=VID, idProduct=PID, serial_number="AL1")

    @patch('keydeck.hid_device.usb.util')
    @patch('keydeck.hid_device.usb.core.find')
    def test_open_detaches_and_claims(self, mock_find, mock_util):
        device = MagicMock()
        device.is_kernel_driver_active.return_value = True
        mock_find.return_value = device
        ep = MagicMock(bEndpointAddress=0x81)
        mock_util.find_descriptor.return_value = ep

        transport = PyUsbTransport(VID, PID)
        transport.open()

        device.detach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        mock_util.claim_interface.assert_called_once_with(device, USB_INTERFACE)
        assert transport.is_open

        transport.close()
        mock_util.release_interface.assert_called_once_with(device, USB_INTERFACE)
        device.attach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        mock_util.dispose_resources.assert_called_once_with(device)
        assert not transport.is_open

    @patch('keydeck.hid_device.usb.util')
    @patch('keydeck.hid_device.usb.core.find')
    def test_open_without_in_endpoint(self, mock_find, mock_util):
        device = MagicMock()
        device.is_kernel_driver_active.return_value = False
        mock_find.return_value = device
        mock_util.find_descriptor.return_value = None

        transport = PyUsbTransport(VID, PID)
        with pytest.raises(OSError, match="IN endpoint"):
            transport.open()
        assert not transport.is_open
        mock_util.dispose_resources.assert_called_once_with(device)

    @pytest.mark.parametrize("failing", ["claim", "config", "endpoint"])
    @patch('keydeck.hid_device.usb.util')
    @patch('keydeck.hid_device.usb.core.find')
    def test_failed_open_reattaches_kernel_driver(self, mock_find, mock_util, failing):
        device = MagicMock()
        device.is_kernel_driver_active.return_value = True
        mock_find.return_value = device
        mock_util.find_descriptor.return_value = MagicMock(bEndpointAddress=0x81)
        if failing == "claim":
            mock_util.claim_interface.side_effect = usb.core.USBError("busy")
        elif failing == "config":
            device.get_active_configuration.side_effect = usb.core.USBError("io")
        else:
            mock_util.find_descriptor.return_value = None

        transport = PyUsbTransport(VID, PID)
        with pytest.raises(OSError):
            transport.open()

        device.detach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        device.attach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        mock_util.dispose_resources.assert_called_once_with(device)
        assert not transport.is_open

        transport.close()  # nothing left to undo
        device.attach_kernel_driver.assert_called_once()

    @patch('keydeck.hid_device.usb.util')
    @patch('keydeck.hid_device.usb.core.find')
    def test_reattach_after_failed_release(self, mock_find, mock_util):
        device = MagicMock()
        device.is_kernel_driver_active.return_value = True
        mock_find.return_value = device
        mock_util.find_descriptor.return_value = MagicMock(bEndpointAddress=0x81)
        mock_util.release_interface.side_effect = usb.core.USBError("gone")

        transport = PyUsbTransport(VID, PID)
        transport.open()
        transport.close()
        device.attach_kernel_driver.assert_called_once_with(USB_INTERFACE)
        mock_util.dispose_resources.assert_called_once_with(device)


# =========================================================================
# Factory
# =========================================================================

class TestCreateTransport:

    def test_hidapi(self):
        t = create_transport("hidapi", VID, PID, path=b'/dev/hidraw0')
        assert isinstance(t, HidApiTransport)
        assert isinstance(t, HidTransport)
        assert not t.is_open

    def test_pyusb(self):
        t = create_transport("pyusb", VID, PID)
        assert isinstance(t, PyUsbTransport)

    def test_unknown(self):
        with pytest.raises(ValueError, match="serial"):
            create_transport("serial", VID, PID)
