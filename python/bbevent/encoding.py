"""Primitive codecs shared by the event decoders: varint and zigzag.

Also defines the decode error taxonomy.  Every decode path raises one of:

  IncompleteError  -- the buffer ends before the current step is complete;
                      feed more bytes and retry from the same position.
  MalformedError   -- the bytes are present but invalid; the stream cannot
                      be resynchronised.
"""

from __future__ import annotations

from typing import Union

Buffer = Union[bytes, bytearray, memoryview]

# A 32-bit value never needs more than five 7-bit groups
VARINT_MAX_BYTES = 5

_U32_MASK = 0xFFFFFFFF


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class EventDecodeError(Exception):
    """Base class for event decoding failures."""


class IncompleteError(EventDecodeError):
    """Not enough bytes to finish decoding.

    ``needed`` is the minimum number of extra bytes required, or None when
    it cannot be known (e.g. partway through a varint).
    """

    def __init__(self, needed: int | None = None):
        self.needed = needed
        if needed is None:
            msg = "incomplete input"
        else:
            msg = f"incomplete input, need at least {needed} more byte(s)"
        super().__init__(msg)


class MalformedError(EventDecodeError, ValueError):
    """Input violates the wire format.

    ``offset`` locates the bad byte.  Multi-record decoders rebase it onto
    the whole input and set ``frames`` to the records decoded before it.
    """

    def __init__(self, message: str, offset: int = 0):
        self.message = message
        self.offset = offset
        self.frames: list = []
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.message} (at offset {self.offset})"


class UnknownEventCodeError(MalformedError):
    """Event code with no known payload layout; the record length is unknowable."""

    def __init__(self, code: int, offset: int = 0):
        self.code = code
        super().__init__(f"unknown event code {code}", offset)


class StreamFailedError(EventDecodeError):
    """Raised when feeding a stream that already hit a malformed record."""


# ---------------------------------------------------------------------------
# Varint (unsigned LEB128)
# ---------------------------------------------------------------------------

def decode_varint(buf: Buffer,
                  max_bytes: int = VARINT_MAX_BYTES) -> tuple[memoryview, int]:
    """Decode an unsigned varint from the start of *buf*.

    Returns ``(remaining, value)``.  The value is truncated to 32 bits.
    """
    view = memoryview(buf)
    value, pos = read_varint(view, 0, max_bytes)
    return view[pos:], value


def read_varint(view: memoryview, offset: int,
                max_bytes: int = VARINT_MAX_BYTES) -> tuple[int, int]:
    """Decode a varint at *offset*.  Returns ``(value, next_offset)``."""
    result = 0
    for i in range(max_bytes):
        pos = offset + i
        if pos >= len(view):
            raise IncompleteError()
        byte = view[pos]
        result |= (byte & 0x7F) << (7 * i)
        if not byte & 0x80:
            return result & _U32_MASK, pos + 1
    raise MalformedError(f"varint longer than {max_bytes} bytes", offset)


def encode_varint(value: int) -> bytes:
    """Encode a 32-bit unsigned integer as a varint."""
    if not 0 <= value <= _U32_MASK:
        raise ValueError(f"varint value out of range: {value}")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


# ---------------------------------------------------------------------------
# Zigzag
# ---------------------------------------------------------------------------

def zigzag_decode(value: int) -> int:
    """Map an unsigned 32-bit zigzag value back to a signed int32."""
    value &= _U32_MASK
    return (value >> 1) ^ -(value & 1)


def zigzag_encode(value: int) -> int:
    """Map a signed int32 to its unsigned zigzag form."""
    if not -0x80000000 <= value <= 0x7FFFFFFF:
        raise ValueError(f"int32 value out of range: {value}")
    return ((value << 1) ^ (value >> 31)) & _U32_MASK
