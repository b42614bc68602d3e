"""
SextetStream codec and cabinet light mapping.

The host speaks SextetStream: every byte on a line carries 6 state bits.
Outbound (button) bytes are packed into the printable range with the
recommended StepMania transform::

    b = ((b + 0x10) & 0x3F) + 0x30      # 0x00..0x3F → 0x30..0x6F

Inbound (light) bytes are consumed as raw sub-bit flags: the low 6 bits of
byte ``j`` are stream indexes ``j*6 .. j*6+5``, each naming a
``CabinetLight``.  Only some of those identities are wired to a bit of the
ITGIO 32-bit light report; the rest are silently dropped.
"""

from __future__ import annotations

from enum import IntEnum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .constants import BUTTON_BITMAP_BITS, SEXTET_BITS


class CabinetLight(IntEnum):
    """Logical light/button identities in SextetStream order.

    The value of each member is its stream index.
    """
    MarqueeUpperLeft = 0
    MarqueeUpperRight = 1
    MarqueeLowerLeft = 2
    MarqueeLowerRight = 3
    BassLeft = 4
    BassRight = 5

    Player1MenuLeft = 6
    Player1MenuRight = 7
    Player1MenuUp = 8
    Player1MenuDown = 9
    Player1Start = 10
    Player1Select = 11
    Player1Back = 12
    Player1Coin = 13
    Player1Operator = 14
    Player1EffectUp = 15
    Player1EffectDown = 16
    Player1Reserved1 = 17

    Player1PadLeft = 18
    Player1PadRight = 19
    Player1PadUp = 20
    Player1PadDown = 21
    Player1PadUpLeft = 22
    Player1PadUpRight = 23
    Player1PadCentre = 24
    Player1PadDownLeft = 25
    Player1PadDownRight = 26
    Player1Light10 = 27
    Player1Light11 = 28
    Player1Light12 = 29
    Player1Light13 = 30
    Player1Light14 = 31
    Player1Light15 = 32
    Player1Light16 = 33
    Player1Light17 = 34
    Player1Light18 = 35
    Player1Light19 = 36
    Player1Reserved2 = 37
    Player1Reserved3 = 38
    Player1Reserved4 = 39
    Player1Reserved5 = 40
    Player1Reserved6 = 41

    Player2MenuLeft = 42
    Player2MenuRight = 43
    Player2MenuUp = 44
    Player2MenuDown = 45
    Player2Start = 46
    Player2Select = 47
    Player2Back = 48
    Player2Coin = 49
    Player2Operator = 50
    Player2EffectUp = 51
    Player2EffectDown = 52
    Player2Reserved1 = 53

    Player2PadLeft = 54
    Player2PadRight = 55
    Player2PadUp = 56
    Player2PadDown = 57
    Player2PadUpLeft = 58
    Player2PadUpRight = 59
    Player2PadCentre = 60
    Player2PadDownLeft = 61
    Player2PadDownRight = 62
    Player2Light10 = 63
    Player2Light11 = 64
    Player2Light12 = 65
    Player2Light13 = 66
    Player2Light14 = 67
    Player2Light15 = 68
    Player2Light16 = 69
    Player2Light17 = 70
    Player2Light18 = 71
    Player2Light19 = 72
    Player2Reserved2 = 73
    Player2Reserved3 = 74
    Player2Reserved4 = 75
    Player2Reserved5 = 76
    Player2Reserved6 = 77


# =========================================================================
# CabinetLight → ITGIO bit offset
# =========================================================================
# Both bass identities drive the same physical output.

HARDWARE_BITS: Mapping[CabinetLight, int] = MappingProxyType({
    CabinetLight.MarqueeUpperLeft: 8,
    CabinetLight.MarqueeLowerLeft: 9,
    CabinetLight.MarqueeUpperRight: 10,
    CabinetLight.MarqueeLowerRight: 11,
    CabinetLight.BassLeft: 15,
    CabinetLight.BassRight: 15,
    CabinetLight.Player1Start: 13,
    CabinetLight.Player1PadLeft: 1,
    CabinetLight.Player1PadRight: 0,
    CabinetLight.Player1PadUp: 3,
    CabinetLight.Player1PadDown: 2,
    CabinetLight.Player2Start: 12,
    CabinetLight.Player2PadLeft: 5,
    CabinetLight.Player2PadRight: 4,
    CabinetLight.Player2PadUp: 7,
    CabinetLight.Player2PadDown: 6,
})


def hardware_bit(light: CabinetLight) -> Optional[int]:
    """ITGIO bit offset for *light*, or None if it is not wired."""
    return HARDWARE_BITS.get(light)


def light_from_index(index: int) -> Optional[CabinetLight]:
    """CabinetLight at stream *index*, or None past the end of the table."""
    try:
        return CabinetLight(index)
    except ValueError:
        return None


def lights_from_cabinet(lights: Iterable[CabinetLight]) -> int:
    """Build an ITGIO light bitmap from a set of cabinet identities."""
    bitmap = 0
    for light in lights:
        bit = hardware_bit(light)
        if bit is not None:
            bitmap |= 1 << bit
    return bitmap


# =========================================================================
# Printable packing
# =========================================================================

def pack_printable(sextet: int) -> int:
    """Map a raw sextet (0x00..0x3F) into 0x30..0x6F."""
    return ((sextet + 0x10) & 0x3F) + 0x30


def unpack_printable(byte: int) -> int:
    """Inverse of :func:`pack_printable`."""
    return (byte - 0x30 - 0x10) & 0x3F


# =========================================================================
# Buttons: ITGIO bitmap → SextetStream
# =========================================================================

def encode_buttons(bitmap: int) -> bytes:
    """Encode a high-active button bitmap as a SextetStream payload.

    Only the low 16 bits are reported.  The payload stops at the highest
    non-zero sextet, so an idle pad encodes to ``b""``; the caller adds the
    line terminator.
    """
    sextets = bytearray((BUTTON_BITMAP_BITS + SEXTET_BITS - 1) // SEXTET_BITS)
    length = 0
    for i in range(BUTTON_BITMAP_BITS):
        if bitmap & (1 << i):
            byte_idx = i // SEXTET_BITS
            sextets[byte_idx] |= 1 << (i % SEXTET_BITS)
            length = byte_idx + 1

    return bytes(pack_printable(b) for b in sextets[:length])


def decode_buttons(data: bytes) -> int:
    """Decode a printable SextetStream button payload back to a bitmap.

    Accepts the payload with or without its line terminator.
    """
    bitmap = 0
    for byte_idx, byte in enumerate(data.rstrip(b"\n")):
        sextet = unpack_printable(byte)
        for bit in range(SEXTET_BITS):
            if sextet & (1 << bit):
                bitmap |= 1 << (byte_idx * SEXTET_BITS + bit)
    return bitmap


# =========================================================================
# Lights: SextetStream → ITGIO bitmap
# =========================================================================

def decode_lights(data: bytes) -> int:
    """Translate a raw SextetStream light payload into an ITGIO bitmap.

    Bytes are not run through :func:`unpack_printable`; only their low six
    bits are read.  Identities without a hardware bit, and indexes past the
    end of ``CabinetLight``, are ignored.
    """
    bitmap = 0
    for byte_idx, byte in enumerate(data):
        if byte == 0:
            continue
        for bit in range(SEXTET_BITS):
            if not byte & (1 << bit):
                continue
            light = light_from_index(byte_idx * SEXTET_BITS + bit)
            if light is None:
                continue
            offset = hardware_bit(light)
            if offset is not None:
                bitmap |= 1 << offset
    return bitmap


def describe_buttons(bitmap: int) -> str:
    """Compact ``0b...`` rendering used in debug logs."""
    return f"{bitmap & 0xFFFFFFFF:#034b}"
