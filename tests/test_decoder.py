"""Test batch and streaming event decoding.

Run from the repo root:
    python3 tests/test_decoder.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "python"))

import logging

from bbevent.encoding import MalformedError, StreamFailedError, UnknownEventCodeError
from bbevent.events import (
    SyncBeep, FlightMode, Disarm, InFlightAdjustment, LoggingResume, EndOfLog,
    FloatAdjustment, IntAdjustment, build_event,
)
from bbevent.decoder import EventDecoder, decode_events


def make_frames():
    return [
        SyncBeep(1000),
        FlightMode(flags=0b11, old_flags=0b01),
        InFlightAdjustment(5, FloatAdjustment(1.5)),
        InFlightAdjustment(5, IntAdjustment(-3)),
        LoggingResume(iteration=512, time=2_000_000),
        Disarm(reason=4),
        EndOfLog(),
    ]


def make_stream(frames):
    return b"".join(build_event(f) for f in frames)


def test_decode_events():
    print("test_decode_events...", end="")

    frames = make_frames()
    batch = decode_events(make_stream(frames))
    assert batch.frames == frames
    assert batch.complete
    assert batch.remainder == b""

    print(" OK")


def test_decode_events_partial():
    """A trailing partial record is returned as remainder."""
    print("test_decode_events_partial...", end="")

    data = build_event(SyncBeep(1)) + build_event(LoggingResume(70000, 9))[:-1]
    batch = decode_events(data)
    assert batch.frames == [SyncBeep(1)]
    assert not batch.complete
    assert batch.remainder == data[3:]

    print(" OK")


def test_decode_events_stops_at_end_of_log():
    print("test_decode_events_stops_at_end_of_log...", end="")

    data = build_event(Disarm(1)) + build_event(EndOfLog()) + b"H Product:"
    batch = decode_events(data)
    assert batch.frames == [Disarm(1), EndOfLog()]
    assert batch.complete
    assert batch.remainder == b"H Product:"

    print(" OK")


def test_decode_events_malformed():
    print("test_decode_events_malformed...", end="")

    data = build_event(Disarm(1)) + b"E\x63\x00"
    try:
        decode_events(data)
    except UnknownEventCodeError as e:
        assert e.code == 99
    else:
        raise AssertionError("expected UnknownEventCodeError")

    print(" OK")


def test_decode_events_malformed_keeps_earlier_frames():
    """Frames before a bad record ride on the error; offset is absolute."""
    print("test_decode_events_malformed_keeps_earlier_frames...", end="")

    good = build_event(Disarm(1))
    data = good * 100 + b"E\x63"
    try:
        decode_events(data)
    except UnknownEventCodeError as e:
        assert e.frames == [Disarm(1)] * 100
        assert e.offset == len(good) * 100 + 1
        assert data[e.offset] == 0x63
        assert f"offset {e.offset}" in str(e)
    else:
        raise AssertionError("expected UnknownEventCodeError")

    # Malformed varint in the third record
    data = good * 2 + b"E\x00" + b"\xff" * 5
    try:
        decode_events(data)
    except MalformedError as e:
        assert e.frames == [Disarm(1)] * 2
        assert e.offset == len(good) * 2 + 2
    else:
        raise AssertionError("expected MalformedError")

    print(" OK")


def test_stream_fragmented():
    """Feed the stream one byte at a time."""
    print("test_stream_fragmented...", end="")

    frames = make_frames()
    stream = make_stream(frames)

    decoder = EventDecoder()
    results = []
    for i in range(len(stream)):
        results.extend(decoder.feed(stream[i:i + 1]))

    assert results == frames
    assert decoder.finished
    assert not decoder.failed
    assert decoder.frames_decoded == len(frames)
    assert decoder.bytes_consumed == len(stream)
    assert decoder.pending == b""

    print(" OK")


def test_stream_chunks():
    print("test_stream_chunks...", end="")

    frames = make_frames()
    stream = make_stream(frames)

    decoder = EventDecoder()
    results = decoder.feed(stream[:5])
    assert results == [SyncBeep(1000)]
    assert decoder.pending == stream[4:5]
    results += decoder.feed(stream[5:])
    assert results == frames

    print(" OK")


def test_stream_after_end_of_log():
    print("test_stream_after_end_of_log...", end="")

    decoder = EventDecoder()
    results = decoder.feed(build_event(EndOfLog()) + b"H Field")
    assert results == [EndOfLog()]
    assert decoder.finished
    # Bytes fed after end of log are not buffered
    for _ in range(100):
        assert decoder.feed(build_event(SyncBeep(1))) == []
    assert decoder.pending == b"H Field"
    assert decoder.frames_decoded == 1

    decoder.reset()
    assert not decoder.finished
    assert decoder.pending == b""
    assert decoder.feed(build_event(SyncBeep(2))) == [SyncBeep(2)]

    print(" OK")


def test_stream_malformed_is_fatal():
    print("test_stream_malformed_is_fatal...", end="")

    decoder = EventDecoder()
    assert decoder.feed(build_event(Disarm(2))) == [Disarm(2)]

    try:
        decoder.feed(b"E\x63")
    except UnknownEventCodeError:
        pass
    else:
        raise AssertionError("expected UnknownEventCodeError")

    assert decoder.failed
    assert decoder.pending == b""

    try:
        decoder.feed(build_event(SyncBeep(1)))
    except StreamFailedError as e:
        assert isinstance(e.__cause__, UnknownEventCodeError)
    else:
        raise AssertionError("expected StreamFailedError")

    decoder.reset()
    assert not decoder.failed
    assert decoder.feed(build_event(SyncBeep(1))) == [SyncBeep(1)]

    print(" OK")


def test_stream_malformed_logs_warning():
    print("test_stream_malformed_logs_warning...", end="")

    records = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = _Collect(level=logging.WARNING)
    log = logging.getLogger("bbevent.decoder")
    log.addHandler(handler)
    try:
        decoder = EventDecoder()
        try:
            decoder.feed(b"X")
        except MalformedError:
            pass
        else:
            raise AssertionError("expected MalformedError")
    finally:
        log.removeHandler(handler)

    assert len(records) == 1
    assert records[0].levelno == logging.WARNING
    assert "malformed" in records[0].getMessage()

    print(" OK")


def test_stream_malformed_keeps_earlier_frames():
    print("test_stream_malformed_keeps_earlier_frames...", end="")

    good = build_event(Disarm(1))
    decoder = EventDecoder()
    assert decoder.feed(build_event(SyncBeep(7))) == [SyncBeep(7)]

    try:
        decoder.feed(good * 100 + b"E\x63")
    except UnknownEventCodeError as e:
        assert e.frames == [Disarm(1)] * 100
        # Offset counts from the start of the stream
        assert e.offset == len(build_event(SyncBeep(7))) + len(good) * 100 + 1
    else:
        raise AssertionError("expected UnknownEventCodeError")

    assert decoder.frames_decoded == 101
    assert decoder.bytes_consumed == len(build_event(SyncBeep(7))) + len(good) * 100

    print(" OK")


def test_stream_partial_end_of_log():
    print("test_stream_partial_end_of_log...", end="")

    decoder = EventDecoder()
    assert decoder.feed(b"E\xffEnd of") == []
    assert decoder.pending == b"E\xffEnd of"
    assert decoder.feed(b" log\x00") == [EndOfLog()]
    assert decoder.finished

    print(" OK")


if __name__ == "__main__":
    print("bbevent decoder tests")
    print("=====================\n")

    test_decode_events()
    test_decode_events_partial()
    test_decode_events_stops_at_end_of_log()
    test_decode_events_malformed()
    test_decode_events_malformed_keeps_earlier_frames()
    test_stream_fragmented()
    test_stream_chunks()
    test_stream_after_end_of_log()
    test_stream_malformed_is_fatal()
    test_stream_malformed_logs_warning()
    test_stream_malformed_keeps_earlier_frames()
    test_stream_partial_end_of_log()

    print("\nAll tests passed.")
