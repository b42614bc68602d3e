"""Shared pyusb mocks for the ITGIO device tests."""
import errno
from unittest.mock import MagicMock, patch

import pytest
import usb.core

from itgio.constants import ITGIO_VID


def _make_usb_device(vid: int = ITGIO_VID, pid: int = 0x1502, interfaces=(0,)) -> MagicMock:
    """MagicMock standing in for a ``usb.core.Device``.

    *interfaces* lists bInterfaceNumber values as they appear when iterating
    the active configuration (alternate settings repeat a number).
    """
    dev = MagicMock()
    dev.idVendor = vid
    dev.idProduct = pid
    dev.bus = 1
    dev.address = 7
    dev.get_active_configuration.return_value = [
        MagicMock(bInterfaceNumber=n) for n in interfaces
    ]
    # No kernel driver bound: libusb reports NOT_FOUND
    dev.detach_kernel_driver.side_effect = usb.core.USBError(
        "Entity not found", errno=errno.ENOENT,
    )
    return dev


@pytest.fixture
def usb_device():
    return _make_usb_device()


@pytest.fixture
def usb_util():
    """Patch the pyusb interface helpers used by ItgioDevice."""
    with patch("itgio.device_itgio.usb.util.claim_interface") as claim, \
         patch("itgio.device_itgio.usb.util.release_interface") as release, \
         patch("itgio.device_itgio.usb.util.dispose_resources") as dispose:
        yield MagicMock(claim=claim, release=release, dispose=dispose)


@pytest.fixture
def make_usb_device():
    """Factory for extra mock devices (different ids or interface layouts)."""
    return _make_usb_device
