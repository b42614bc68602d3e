#!/usr/bin/env python3
"""
USB layer for ITGIO dance-pad controllers.

ITGIO boards enumerate as HID devices but are driven entirely through
control transfers on endpoint 0:

  • GET_REPORT (0x01, wValue 256) → 4 bytes, little-endian, low-active buttons
  • SET_REPORT (0x09, wValue 512) ← 4 bytes, little-endian, high-active lights

The ``ItgioBackend`` ABC abstracts the device so that:
  • Tests can inject a simulated backend (no real hardware needed).
  • ``ItgioDevice`` provides real USB via pyusb (libusb backend).

Linux dependencies:
  • pyusb:  ``pip install pyusb``  (needs libusb1 — ``apt install libusb-1.0-0``)
"""

from __future__ import annotations

import errno
import logging
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

import usb.core
import usb.util

from .constants import (
    CONTROL_REPORT_SIZE,
    CONTROL_TIMEOUT_MS,
    HID_GET_REPORT,
    HID_IFACE_IN_WVALUE,
    HID_IFACE_OUT_WVALUE,
    HID_SET_REPORT,
    HID_WINDEX,
    ITGIO_PIDS,
    ITGIO_VID,
)

log = logging.getLogger(__name__)


# =========================================================================
# Identity
# =========================================================================

@dataclass(frozen=True)
class DeviceIdentifier:
    """USB vendor/product id pair."""
    vid: int
    pid: int

    def __str__(self) -> str:
        return f"{self.vid:04x}:{self.pid:04x}"


KNOWN_IDS = tuple(DeviceIdentifier(ITGIO_VID, pid) for pid in ITGIO_PIDS)


# =========================================================================
# Errors
# =========================================================================

class ItgioError(RuntimeError):
    """Base class for ITGIO device failures."""


class DeviceNotOpenError(ItgioError):
    """I/O attempted on a device without an open handle."""


class DeviceOpenError(ItgioError):
    """Opening, detaching or claiming the device failed."""


class KernelDriverError(ItgioError):
    """A kernel driver holds an interface and could not be detached."""


class TransferLengthError(ItgioError):
    """A control transfer moved an unexpected number of bytes."""


# =========================================================================
# Abstract backend
# =========================================================================

class ItgioBackend(ABC):
    """Button/light device interface — mockable for testing."""

    ident: DeviceIdentifier

    @abstractmethod
    def open(self) -> None:
        """Open the device and claim its interfaces."""

    @abstractmethod
    def close(self) -> None:
        """Release interfaces and drop the handle.  Safe when closed."""

    @abstractmethod
    def read_buttons(self) -> int:
        """Current button bitmap, high-active."""

    @abstractmethod
    def write_lights(self, bitmap: int) -> None:
        """Set the light bitmap, high-active."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the device currently holds a handle."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


# =========================================================================
# Real device: pyusb
# =========================================================================

_REQUEST_TYPE_IN = usb.util.build_request_type(
    usb.util.CTRL_IN, usb.util.CTRL_TYPE_CLASS, usb.util.CTRL_RECIPIENT_INTERFACE
)
_REQUEST_TYPE_OUT = usb.util.build_request_type(
    usb.util.CTRL_OUT, usb.util.CTRL_TYPE_CLASS, usb.util.CTRL_RECIPIENT_INTERFACE
)

# libusb NOT_FOUND / INVALID_PARAM / NO_DEVICE: no driver was bound, or
# the platform does not need detaching.
_DETACH_IGNORED_ERRNOS = frozenset({errno.ENOENT, errno.EINVAL, errno.ENODEV})


class ItgioDevice(ItgioBackend):
    """ITGIO controller accessed through pyusb.

    The pyusb ``Device`` doubles as the handle: ``_handle`` holds it between
    a successful ``open()`` and the next ``close()`` and is ``None``
    otherwise.
    """

    def __init__(self, device: Any, timeout_ms: int = CONTROL_TIMEOUT_MS):
        self.device = device
        self.ident = identify(device)
        self.timeout_ms = timeout_ms
        self._handle: Optional[Any] = None
        self._claimed: List[int] = []

    def __repr__(self) -> str:
        return (f"ItgioDevice({self.ident}, bus={getattr(self.device, 'bus', None)}, "
                f"address={getattr(self.device, 'address', None)})")

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    # -- Lifecycle -----------------------------------------------------

    def open(self) -> None:
        """(Re)open the device, detach kernel drivers, claim all interfaces.

        On failure the partially opened handle is closed before the error
        is raised as ``DeviceOpenError``.
        """
        try:
            self._try_open()
        except Exception as e:
            self.close()
            if isinstance(e, DeviceOpenError):
                raise
            raise DeviceOpenError(f"Failed to open itgio device {self.ident}: {e}") from e

    def _try_open(self) -> None:
        self.close()

        log.info("Opening itgio device %s", self.ident)
        self._handle = self.device
        # Reading the active configuration opens the libusb handle
        cfg = self._handle.get_active_configuration()
        interfaces = sorted({intf.bInterfaceNumber for intf in cfg})

        for number in interfaces:
            self._detach_kernel_driver(number)

        for number in interfaces:
            usb.util.claim_interface(self._handle, number)
            self._claimed.append(number)
            log.debug("Claimed interface %d on %s", number, self.ident)

    def _detach_kernel_driver(self, number: int) -> None:
        try:
            self._handle.detach_kernel_driver(number)
            log.debug("Detached kernel driver from interface %d", number)
        except usb.core.USBError as e:
            if e.errno in _DETACH_IGNORED_ERRNOS:
                log.debug("Kernel driver detach on interface %d: %s", number, e)
                return
            if e.errno == errno.ENOSYS:
                log.error(
                    "A kernel driver is already attached to device %s but driver "
                    "unloading is not supported on this platform", self.ident,
                )
                raise KernelDriverError(
                    f"Cannot detach kernel driver from {self.ident} on this platform"
                ) from e
            log.error("Failed to detach kernel driver for device %s due to error %s",
                      self.ident, e)
            raise KernelDriverError(
                f"Failed to detach kernel driver from {self.ident}: {e}"
            ) from e

    def close(self) -> None:
        """Release claimed interfaces, reset, and drop the handle.

        Every step is best-effort: failures are logged and the handle is
        cleared regardless.
        """
        handle, self._handle = self._handle, None
        claimed, self._claimed = self._claimed, []
        if handle is None:
            return

        log.info("Closing itgio device %s", self.ident)
        for number in claimed:
            try:
                usb.util.release_interface(handle, number)
            except usb.core.USBError as e:
                log.warning("Failed to release iface %d on itgio device due to error %s",
                            number, e)

        try:
            handle.reset()
        except usb.core.USBError as e:
            log.warning("Failed to reset itgio device due to error %s", e)

        usb.util.dispose_resources(handle)

    # -- I/O -----------------------------------------------------------

    def _require_handle(self, action: str) -> Any:
        if self._handle is None:
            raise DeviceNotOpenError(
                f"Tried to {action} device {self.ident} without opening it first."
            )
        return self._handle

    def read_buttons(self) -> int:
        """GET_REPORT → 4 bytes → inverted u32 (hardware is low-active)."""
        handle = self._require_handle("read button status from")
        data = handle.ctrl_transfer(
            _REQUEST_TYPE_IN,
            HID_GET_REPORT,
            HID_IFACE_IN_WVALUE,
            HID_WINDEX,
            CONTROL_REPORT_SIZE,
            timeout=self.timeout_ms,
        )

        if len(data) != CONTROL_REPORT_SIZE:
            raise TransferLengthError(
                f"Got response of length {len(data)} instead of the expected "
                f"length {CONTROL_REPORT_SIZE}: {bytes(data).hex()}"
            )

        (raw,) = struct.unpack("<I", bytes(data))
        return ~raw & 0xFFFFFFFF

    def write_lights(self, bitmap: int) -> None:
        """SET_REPORT ← 4-byte little-endian light bitmap."""
        handle = self._require_handle("write lights to")
        payload = struct.pack("<I", bitmap & 0xFFFFFFFF)
        written = handle.ctrl_transfer(
            _REQUEST_TYPE_OUT,
            HID_SET_REPORT,
            HID_IFACE_OUT_WVALUE,
            HID_WINDEX,
            payload,
            timeout=self.timeout_ms,
        )

        if written != CONTROL_REPORT_SIZE:
            raise TransferLengthError(
                f"Only managed to send {written} bytes of control message instead "
                f"of the expected {CONTROL_REPORT_SIZE}: {payload.hex()}"
            )


# =========================================================================
# Device discovery
# =========================================================================

def identify(device: Any) -> DeviceIdentifier:
    """DeviceIdentifier from a pyusb device's descriptor fields."""
    return DeviceIdentifier(device.idVendor, device.idProduct)


def find_devices(timeout_ms: int = CONTROL_TIMEOUT_MS) -> List[ItgioDevice]:
    """Scan the bus for ITGIO controllers.

    ``usb.core.NoBackendError`` / ``usb.core.USBError`` propagate: without
    a working libusb context there is nothing to serve.
    """
    matches = []
    for dev in usb.core.find(find_all=True):
        ident = identify(dev)
        if ident not in KNOWN_IDS:
            continue
        log.debug("Found matching device with vid %#06x, pid %#06x", ident.vid, ident.pid)
        matches.append(ItgioDevice(dev, timeout_ms=timeout_ms))

    log.info("Found a total of %d itgio devices", len(matches))
    return matches
