"""Encoding and decoding of the fireplace wire protocol."""

from typing import Optional

from constants import (
    FLAME_HEIGHT_MAX,
    FLAME_HEIGHT_MIN,
    FLAME_STEPS,
    FRAME_PREFIX,
    FRAME_TERMINATOR,
    OPCODE_FLAME_HEIGHT,
    OPCODE_OFF,
    OPCODE_ON,
    OPCODE_STATUS,
    STATUS_FIELD_LENGTH,
    STATUS_FIELD_OFFSET,
    STATUS_ON_THRESHOLD,
)
from models import FireplaceStatus

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class DecodeError(ValueError):
    """Raised when a status frame cannot be decoded."""


class FlameHeightOutOfRangeError(ValueError):
    """Raised when a requested flame height has no step code."""


def encode_command(opcode: str, step_hex: Optional[str] = None) -> bytes:
    """
    Build the raw bytes for one command frame.

    The frame is FRAME_PREFIX + opcode, hex decoded. With step_hex the
    terminator follows the step code, as in "3136" + "4646" + "03".
    """
    body = opcode if step_hex is None else f"{opcode}{step_hex}{FRAME_TERMINATOR}"
    return bytes.fromhex(f"{FRAME_PREFIX}{body}")


def flame_step(height: int) -> str:
    """Return the step code for a flame height in 1..12."""
    if not FLAME_HEIGHT_MIN <= height <= FLAME_HEIGHT_MAX:
        raise FlameHeightOutOfRangeError(
            f"Flame height {height} outside {FLAME_HEIGHT_MIN}..{FLAME_HEIGHT_MAX}"
        )
    return FLAME_STEPS[height - FLAME_HEIGHT_MIN]


def status_query() -> bytes:
    return encode_command(OPCODE_STATUS)


def turn_on() -> bytes:
    return encode_command(OPCODE_ON)


def turn_off() -> bytes:
    return encode_command(OPCODE_OFF)


def set_flame_height(height: int) -> bytes:
    return encode_command(OPCODE_FLAME_HEIGHT, flame_step(height))


def flame_height_from_raw(raw: int) -> int:
    """Map the raw 0..255 status value onto the 0..12 flame scale."""
    height = round((raw - 128) / 128 * 12) + 1
    return max(0, min(FLAME_HEIGHT_MAX, height))


def decode_status(frame: bytes) -> FireplaceStatus:
    """
    Decode a status frame received from the fireplace.

    Byte 0 is a frame marker and is dropped. The remainder is ASCII; the two
    characters at STATUS_FIELD_OFFSET hold the status value in hex.
    The height remap and the on threshold are separate rules, so raw 123
    decodes as flame_height=1 with is_on=False.
    """
    data = frame[1:]
    end = STATUS_FIELD_OFFSET + STATUS_FIELD_LENGTH
    if len(data) < end:
        raise DecodeError(f"Status frame too short ({len(frame)} bytes)")

    field = data[STATUS_FIELD_OFFSET:end].decode("ascii", errors="replace")
    if not all(c in _HEX_DIGITS for c in field):
        raise DecodeError(f"Status field {field!r} is not hex")

    raw = int(field, 16)
    return FireplaceStatus(
        flame_height=flame_height_from_raw(raw),
        is_on=raw > STATUS_ON_THRESHOLD,
    )
