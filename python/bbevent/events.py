"""Event frame types and the 'E' record decoder.

Record format:
  [tag 'E'(1)][event_code(1)][payload]

The payload layout depends on the event code, see _PAYLOAD_DECODERS.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, ClassVar, Union

from .encoding import (
    Buffer, IncompleteError, MalformedError, UnknownEventCodeError,
    encode_varint, read_varint, zigzag_decode, zigzag_encode,
)

EVENT_TAG = b"E"
LOG_END_MESSAGE = b"End of log\x00"

# InFlightAdjustment: top bit of the function byte selects a float payload
ADJUSTMENT_FLOAT_FLAG = 0x80
ADJUSTMENT_FUNCTION_MASK = 0x7F

_F32_FMT = "<f"
_F32_SIZE = struct.calcsize(_F32_FMT)  # 4


class EventCode(IntEnum):
    SYNC_BEEP = 0
    INFLIGHT_ADJUSTMENT = 13
    LOGGING_RESUME = 14
    DISARM = 15
    FLIGHT_MODE = 30
    IMU_FAILURE = 40
    LOG_END = 255


# ---------------------------------------------------------------------------
# Frame types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FloatAdjustment:
    value: float


@dataclass(frozen=True)
class IntAdjustment:
    value: int


Adjustment = Union[FloatAdjustment, IntAdjustment]


@dataclass(frozen=True)
class SyncBeep:
    code: ClassVar[EventCode] = EventCode.SYNC_BEEP
    time: int


@dataclass(frozen=True)
class FlightMode:
    """Flight mode bitmask after (``flags``) and before (``old_flags``) a change."""
    code: ClassVar[EventCode] = EventCode.FLIGHT_MODE
    flags: int
    old_flags: int


@dataclass(frozen=True)
class IMUFailure:
    code: ClassVar[EventCode] = EventCode.IMU_FAILURE
    error_code: int


@dataclass(frozen=True)
class Disarm:
    code: ClassVar[EventCode] = EventCode.DISARM
    reason: int


@dataclass(frozen=True)
class InFlightAdjustment:
    """A tuning parameter changed in flight.  ``function`` is 7 bits wide."""
    code: ClassVar[EventCode] = EventCode.INFLIGHT_ADJUSTMENT
    function: int
    adjustment: Adjustment


@dataclass(frozen=True)
class LoggingResume:
    """Sampled-frame logging resumed at ``iteration`` / ``time`` after a gap."""
    code: ClassVar[EventCode] = EventCode.LOGGING_RESUME
    iteration: int
    time: int


@dataclass(frozen=True)
class EndOfLog:
    code: ClassVar[EventCode] = EventCode.LOG_END


Frame = Union[
    SyncBeep, FlightMode, IMUFailure, Disarm,
    InFlightAdjustment, LoggingResume, EndOfLog,
]


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _match_literal(view: memoryview, pos: int, literal: bytes,
                   what: str) -> int:
    """Match *literal* at *pos*, allowing the buffer to end partway through."""
    available = bytes(view[pos:pos + len(literal)])
    if available != literal[:len(available)]:
        raise MalformedError(f"bad {what}: {available!r}", pos)
    if len(available) < len(literal):
        raise IncompleteError(len(literal) - len(available))
    return pos + len(literal)


def _sync_beep(view: memoryview, pos: int) -> tuple[int, Frame]:
    time, pos = read_varint(view, pos)
    return pos, SyncBeep(time)


def _inflight_adjustment(view: memoryview, pos: int) -> tuple[int, Frame]:
    if pos >= len(view):
        raise IncompleteError(1)
    function = view[pos]
    pos += 1

    if function & ADJUSTMENT_FLOAT_FLAG:
        if pos + _F32_SIZE > len(view):
            raise IncompleteError(pos + _F32_SIZE - len(view))
        value = struct.unpack_from(_F32_FMT, view, pos)[0]
        pos += _F32_SIZE
        adjustment: Adjustment = FloatAdjustment(value)
        function &= ADJUSTMENT_FUNCTION_MASK
    else:
        raw, pos = read_varint(view, pos)
        adjustment = IntAdjustment(zigzag_decode(raw))

    return pos, InFlightAdjustment(function, adjustment)


def _logging_resume(view: memoryview, pos: int) -> tuple[int, Frame]:
    iteration, pos = read_varint(view, pos)
    time, pos = read_varint(view, pos)
    return pos, LoggingResume(iteration, time)


def _disarm(view: memoryview, pos: int) -> tuple[int, Frame]:
    reason, pos = read_varint(view, pos)
    return pos, Disarm(reason)


def _flight_mode(view: memoryview, pos: int) -> tuple[int, Frame]:
    flags, pos = read_varint(view, pos)
    old_flags, pos = read_varint(view, pos)
    return pos, FlightMode(flags, old_flags)


def _imu_failure(view: memoryview, pos: int) -> tuple[int, Frame]:
    error_code, pos = read_varint(view, pos)
    return pos, IMUFailure(error_code)


def _log_end(view: memoryview, pos: int) -> tuple[int, Frame]:
    pos = _match_literal(view, pos, LOG_END_MESSAGE, "end-of-log message")
    return pos, EndOfLog()


_PAYLOAD_DECODERS: dict[int, Callable[[memoryview, int], tuple[int, Frame]]] = {
    EventCode.SYNC_BEEP: _sync_beep,
    EventCode.INFLIGHT_ADJUSTMENT: _inflight_adjustment,
    EventCode.LOGGING_RESUME: _logging_resume,
    EventCode.DISARM: _disarm,
    EventCode.FLIGHT_MODE: _flight_mode,
    EventCode.IMU_FAILURE: _imu_failure,
    EventCode.LOG_END: _log_end,
}


def parse_event(buf: Buffer) -> tuple[memoryview, Frame]:
    """Decode one event record from the start of *buf*.

    Returns ``(remaining, frame)`` where *remaining* is a view of the bytes
    following the record.  Raises IncompleteError if *buf* ends before the
    record does (nothing is consumed; retry with more bytes from the same
    start) or MalformedError if the record is invalid.
    """
    view = memoryview(buf)
    pos = _match_literal(view, 0, EVENT_TAG, "event tag")

    if pos >= len(view):
        raise IncompleteError(1)
    code = view[pos]
    decoder = _PAYLOAD_DECODERS.get(code)
    if decoder is None:
        raise UnknownEventCodeError(code, pos)

    pos, frame = decoder(view, pos + 1)
    return view[pos:], frame


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _encode_payload(frame: Frame) -> bytes:
    if isinstance(frame, SyncBeep):
        return encode_varint(frame.time)
    if isinstance(frame, InFlightAdjustment):
        if not 0 <= frame.function <= ADJUSTMENT_FUNCTION_MASK:
            raise ValueError(f"adjustment function out of range: {frame.function}")
        adj = frame.adjustment
        if isinstance(adj, FloatAdjustment):
            value = struct.pack(_F32_FMT, adj.value)
            return bytes([frame.function | ADJUSTMENT_FLOAT_FLAG]) + value
        return bytes([frame.function]) + encode_varint(zigzag_encode(adj.value))
    if isinstance(frame, LoggingResume):
        return encode_varint(frame.iteration) + encode_varint(frame.time)
    if isinstance(frame, Disarm):
        return encode_varint(frame.reason)
    if isinstance(frame, FlightMode):
        return encode_varint(frame.flags) + encode_varint(frame.old_flags)
    if isinstance(frame, IMUFailure):
        return encode_varint(frame.error_code)
    if isinstance(frame, EndOfLog):
        return LOG_END_MESSAGE
    raise TypeError(f"not an event frame: {frame!r}")


def build_event(frame: Frame) -> bytes:
    """Encode *frame* as a complete 'E' record."""
    payload = _encode_payload(frame)
    return EVENT_TAG + bytes([frame.code]) + payload
