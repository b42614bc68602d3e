"""
ITGIO Linux - SextetStream bridge for ITGIO dance pads

Exposes an ITGIO USB I/O board as a pair of named pipes speaking the
SextetStream line protocol, so a rhythm game can read pad buttons and
drive cabinet lights without touching USB.

Features:
- Button polling via HID GET_REPORT control transfers (20 ms cadence)
- Light output via HID SET_REPORT control transfers
- CabinetLight ↔ ITGIO bit mapping
- One translator (two threads) per connected pad

Usage:
    # As a library
    from itgio import ItgioTranslator, find_devices
    device = find_devices()[0]
    translator = ItgioTranslator("/opt/itgio_0", device)
    translator.start()
    translator.wait_exit()

    # Command line
    itgio run         # Serve all connected pads
    itgio detect      # List connected pads
"""

from itgio.__version__ import __version__

__author__ = "ITGIO Linux Contributors"

# Core exports
from itgio.device_itgio import (
    DeviceIdentifier,
    ItgioBackend,
    ItgioDevice,
    ItgioError,
    find_devices,
)
from itgio.mapping import CabinetLight, decode_lights, encode_buttons
from itgio.sextet_stream import PathConflictError
from itgio.translator import ItgioTranslator

__all__ = [
    # Version
    "__version__",
    # Device
    "DeviceIdentifier",
    "ItgioBackend",
    "ItgioDevice",
    "ItgioError",
    "find_devices",
    # Codec
    "CabinetLight",
    "decode_lights",
    "encode_buttons",
    # Transport
    "PathConflictError",
    "ItgioTranslator",
]
