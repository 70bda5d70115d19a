"""
This module provides the `ChunkedByteReader`, the lowest layer of the scanner.

A chunk source delivers bytes in pieces of arbitrary length: file reads,
network frames, or one branch of a duplicated stream. The reader turns that
push-style sequence into calls that read or discard an exact number of bytes,
spanning chunk boundaries and keeping the unread remainder of the last chunk
for the next call.
"""
from typing import Iterable, Iterator, Optional

from loguru import logger

from ..config.common import MAX_SKIP_STEP
from ..domain.exceptions import StreamEndedError


class ChunkedByteReader:
    """
    Reads exact byte counts from an iterable of byte chunks.

    The reader is forward-only. It pulls a chunk from the source only when its
    residue cannot satisfy a request, so at most one chunk is buffered at a time.

    A read or skip that comes up short (because the source ended) returns what
    was available and marks the reader finished. Any further read or skip then
    raises `StreamEndedError`.

    Attributes:
        position (int): Number of bytes read or skipped so far.
        finished (bool): True once a read or skip came up short.
    """

    def __init__(self, chunks: Iterable[bytes]):
        """
        Initializes the reader over a chunk source.

        Args:
            chunks: Any iterable of bytes-like objects. Empty chunks are ignored.
        """
        self._chunks: Optional[Iterator[bytes]] = iter(chunks)
        self._residue = memoryview(b"")
        self._exhausted = False
        self._finished = False
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    @property
    def finished(self) -> bool:
        return self._finished

    def done(self) -> bool:
        """
        Returns True once the source is exhausted and no buffered residue remains.

        When the residue is empty this pulls one chunk ahead to find out.
        """
        if len(self._residue):
            return False
        return not self._pull()

    def read_bytes(self, length: int) -> bytes:
        """
        Reads and returns `length` bytes.

        Args:
            length: The number of bytes to read. Non-positive values read nothing.

        Returns:
            Exactly `length` bytes, or fewer if the source ended first. In the
            latter case the reader is marked finished.

        Raises:
            StreamEndedError: If the reader was already finished.
        """
        self._check_not_finished("read", length)
        if length <= 0:
            return b""

        parts = []
        remaining = length
        while remaining > 0:
            if not len(self._residue) and not self._pull():
                break
            part = self._residue[:remaining]
            self._residue = self._residue[len(part):]
            parts.append(part)
            remaining -= len(part)

        data = b"".join(parts)
        self._position += len(data)

        if remaining > 0:
            self._mark_finished("read", length, len(data))
        return data

    def skip_bytes(self, length: int) -> int:
        """
        Discards `length` bytes without materializing them.

        The count may exceed 32 bits; it is consumed in steps of at most
        `MAX_SKIP_STEP` bytes.

        Args:
            length: The number of bytes to discard. Non-positive values skip nothing.

        Returns:
            The number of bytes actually discarded.

        Raises:
            StreamEndedError: If the reader was already finished.
        """
        self._check_not_finished("skip", length)
        if length <= 0:
            return 0

        skipped = 0
        remaining = length
        while remaining > 0:
            step = min(remaining, MAX_SKIP_STEP)
            step_skipped = self._skip_step(step)
            skipped += step_skipped
            remaining -= step_skipped
            if step_skipped < step:
                self._mark_finished("skip", length, skipped)
                break
        return skipped

    def close(self):
        """Releases the chunk source. Closes it if it is a generator or similar."""
        chunks, self._chunks = self._chunks, None
        self._residue = memoryview(b"")
        self._exhausted = True
        close = getattr(chunks, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "ChunkedByteReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _skip_step(self, length: int) -> int:
        remaining = length
        while remaining > 0:
            if not len(self._residue) and not self._pull():
                break
            take = min(remaining, len(self._residue))
            self._residue = self._residue[take:]
            remaining -= take
        skipped = length - remaining
        self._position += skipped
        return skipped

    def _pull(self) -> bool:
        """Loads the next non-empty chunk as residue. Returns False when the source is exhausted."""
        if self._exhausted or self._chunks is None:
            return False
        for chunk in self._chunks:
            if len(chunk):
                self._residue = memoryview(chunk).cast("B")
                return True
        self._exhausted = True
        logger.trace(f"Chunk source exhausted after {self._position} bytes.")
        return False

    def _check_not_finished(self, operation: str, length: int):
        if self._finished:
            raise StreamEndedError(
                f"cannot {operation} {length} byte(s): stream ended at offset {self._position}"
            )

    def _mark_finished(self, operation: str, requested: int, available: int):
        self._finished = True
        logger.debug(
            f"Short {operation} at offset {self._position}: requested {requested} byte(s), "
            f"{available} available."
        )
