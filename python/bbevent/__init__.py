"""bbevent - Blackbox flight log event frame decoder."""

from .encoding import (
    EventDecodeError, IncompleteError, MalformedError, UnknownEventCodeError,
    StreamFailedError,
    decode_varint, encode_varint, zigzag_decode, zigzag_encode,
)
from .events import (
    EventCode, Frame, Adjustment, FloatAdjustment, IntAdjustment,
    SyncBeep, FlightMode, IMUFailure, Disarm, InFlightAdjustment,
    LoggingResume, EndOfLog, parse_event, build_event,
)
from .decoder import EventBatch, decode_events, EventDecoder

__all__ = [
    "EventDecodeError", "IncompleteError", "MalformedError",
    "UnknownEventCodeError", "StreamFailedError",
    "decode_varint", "encode_varint", "zigzag_decode", "zigzag_encode",
    "EventCode", "Frame", "Adjustment", "FloatAdjustment", "IntAdjustment",
    "SyncBeep", "FlightMode", "IMUFailure", "Disarm", "InFlightAdjustment",
    "LoggingResume", "EndOfLog", "parse_event", "build_event",
    "EventBatch", "decode_events", "EventDecoder",
]
