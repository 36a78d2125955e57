"""A first-in, first-out byte buffer filled from a readable stream."""

from __future__ import annotations

from typing import Any

DEFAULT_CHUNK_SIZE = 4096


class ReadBuffer:
    """Bytes read from the network, consumed from the front."""

    def __init__(self, data: bytes = b"", chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._storage = bytearray(data)
        self._position = 0
        self._chunk_size = chunk_size

    def _clean_up(self) -> None:
        del self._storage[: self._position]
        self._position = 0

    def read_from(self, stream: Any) -> int:
        """Read up to one chunk from ``stream``; return the number of bytes read.

        Raises BlockingIOError when a non-blocking stream has nothing to give.
        """
        self._clean_up()
        if hasattr(stream, "read"):
            data = stream.read(self._chunk_size)
        else:
            data = stream.recv(self._chunk_size)
        if data is None:
            raise BlockingIOError("read would block")
        self._storage.extend(data)
        return len(data)

    def chunk(self) -> bytes:
        """Return the bytes not yet consumed."""
        return bytes(self._storage[self._position :])

    def remaining(self) -> int:
        """Return the number of bytes not yet consumed."""
        return len(self._storage) - self._position

    def advance(self, count: int) -> None:
        """Mark ``count`` bytes as consumed."""
        if count < 0 or count > self.remaining():
            raise ValueError("cannot advance past the remaining data")
        self._position += count

    def into_bytes(self) -> bytes:
        """Drop consumed bytes and return what is left."""
        self._clean_up()
        return bytes(self._storage)