"""Batch and streaming decoders for sequences of event records."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .encoding import (
    Buffer, IncompleteError, MalformedError, StreamFailedError,
)
from .events import EndOfLog, Frame, parse_event

logger = logging.getLogger(__name__)


@dataclass
class EventBatch:
    frames: list[Frame]
    remainder: bytes
    complete: bool


def decode_events(data: Buffer) -> EventBatch:
    """Decode consecutive event records from *data*.

    Stops at the first incomplete record, or immediately after an EndOfLog
    (``complete`` is then True).  Unconsumed bytes are returned in
    ``remainder``.  MalformedError propagates with ``offset`` relative to
    *data* and ``frames`` holding the records decoded before it.
    """
    view = memoryview(data)
    frames: list[Frame] = []
    consumed = 0

    while consumed < len(view):
        try:
            rest, frame = parse_event(view[consumed:])
        except IncompleteError:
            break
        except MalformedError as exc:
            exc.offset += consumed
            exc.frames = frames
            raise
        consumed = len(view) - len(rest)
        frames.append(frame)
        if isinstance(frame, EndOfLog):
            return EventBatch(frames=frames, remainder=bytes(rest), complete=True)

    return EventBatch(frames=frames, remainder=bytes(view[consumed:]), complete=False)


class EventDecoder:
    """Stateful stream decoder that reassembles event records from a byte stream.

    Records may be split across feed() calls.  A malformed record fails the
    decoder permanently: the error is re-raised with ``offset`` counted from
    the start of the stream and ``frames`` holding the records that feed()
    call decoded before it.  Every later feed() raises StreamFailedError.

    After EndOfLog no more frames are produced.  Bytes that arrived in the
    same feed() as EndOfLog stay in ``pending``; bytes fed afterwards are
    not buffered.
    """

    def __init__(self):
        self.frames_decoded: int = 0
        self.bytes_consumed: int = 0
        self.finished = False
        self.error: MalformedError | None = None
        self._buf = bytearray()

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet consumed by a decoded record."""
        return bytes(self._buf)

    def feed(self, data: Buffer) -> list[Frame]:
        """Feed raw bytes, return any complete decoded frames."""
        if self.error is not None:
            raise StreamFailedError("event stream already failed") from self.error
        if self.finished:
            logger.debug("ignoring %d bytes fed after end of log", len(data))
            return []

        self._buf.extend(data)
        snapshot = memoryview(bytes(self._buf))
        results: list[Frame] = []
        consumed = 0

        try:
            while consumed < len(snapshot):
                try:
                    rest, frame = parse_event(snapshot[consumed:])
                except IncompleteError:
                    break
                consumed = len(snapshot) - len(rest)
                results.append(frame)
                logger.debug("decoded event %r", frame)
                if isinstance(frame, EndOfLog):
                    logger.debug("end of log after %d bytes",
                                 self.bytes_consumed + consumed)
                    self.finished = True
                    break
        except MalformedError as exc:
            self._commit(consumed, results)
            exc.offset += self.bytes_consumed
            exc.frames = results
            logger.warning("malformed event record: %s", exc)
            self.error = exc
            self._buf.clear()
            raise

        self._commit(consumed, results)
        return results

    def _commit(self, consumed: int, results: list[Frame]) -> None:
        del self._buf[:consumed]
        self.bytes_consumed += consumed
        self.frames_decoded += len(results)

    def reset(self):
        """Clear internal buffer and failure/end state."""
        self._buf.clear()
        self.frames_decoded = 0
        self.bytes_consumed = 0
        self.finished = False
        self.error = None
