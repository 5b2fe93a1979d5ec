"""
Incremental line framing for a streaming byte source.

Each TCP connection owns one LineFramer. Bytes are fed in whatever chunks
recv() returns; complete delimiter-terminated lines come out in arrival
order, exactly once, with the delimiter stripped.
"""

from __future__ import annotations

from typing import Iterator

from utils.protocol import DELIMITER


class FrameOverflowError(Exception):
    """Undelimited data exceeded the configured buffer limit."""
    pass


class LineFramer:
    """
    Accumulates bytes and yields complete lines.

    The buffer is unbounded by default: a peer that never sends the
    delimiter grows it without limit. Pass max_buffer_size to cap the
    undelimited remainder; exceeding it discards that remainder and
    raises FrameOverflowError after the complete lines ahead of it.

    Example:
        framer = LineFramer()
        list(framer.feed(b"$PCONTROL,fan,1\\r\\n$SMS"))  # [b"$PCONTROL,fan,1"]
        framer.remainder                                # b"$SMS"
    """

    def __init__(self, delimiter: bytes = DELIMITER, max_buffer_size: int | None = None):
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._delimiter = delimiter
        self._max_buffer_size = max_buffer_size
        self._buffer = bytearray()
        self._dropped = 0

    @property
    def delimiter(self) -> bytes:
        return self._delimiter

    @property
    def remainder(self) -> bytes:
        """Buffered bytes not yet emitted as a line."""
        return bytes(self._buffer)

    def feed(self, data: bytes) -> Iterator[bytes]:
        """
        Append data and return a lazy iterator over the completed lines.

        The data is buffered immediately. Lines left unconsumed by one
        iterator are produced by the next, so no line is lost or repeated.

        If max_buffer_size is set and the undelimited tail grows past it, the
        tail is discarded right away. Complete lines ahead of it are kept, and
        the iterator raises FrameOverflowError once they have been yielded.
        """
        self._buffer += data
        self._check_overflow()
        return self._lines()

    def _lines(self) -> Iterator[bytes]:
        size = len(self._delimiter)
        while True:
            idx = self._buffer.find(self._delimiter)
            if idx < 0:
                break
            line = bytes(self._buffer[:idx])
            del self._buffer[: idx + size]
            yield line

        if self._dropped:
            dropped, self._dropped = self._dropped, 0
            raise FrameOverflowError(
                f"{dropped} bytes without delimiter (limit {self._max_buffer_size})"
            )

    def _check_overflow(self) -> None:
        if self._max_buffer_size is None or len(self._buffer) <= self._max_buffer_size:
            return
        # Only the tail after the last delimiter counts as undelimited
        last = self._buffer.rfind(self._delimiter)
        keep = 0 if last < 0 else last + len(self._delimiter)
        tail = len(self._buffer) - keep
        if tail > self._max_buffer_size:
            del self._buffer[keep:]
            self._dropped += tail

    def reset(self) -> None:
        """Discard any buffered bytes."""
        self._buffer.clear()
        self._dropped = 0
