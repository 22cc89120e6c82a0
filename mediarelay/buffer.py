"""Growable byte buffer with a read cursor, used for framed socket I/O."""

from __future__ import annotations

import socket
from typing import Union

__all__ = ["Buffer"]

BytesLike = Union[bytes, bytearray, memoryview, str]

_READ_CHUNK = 4096


class Buffer:
    """Bytes appended at the back, consumed from the front."""

    def __init__(self) -> None:
        self._data = bytearray()

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Buffer({bytes(self._data)!r})"

    def peek(self) -> bytes:
        """Return the readable bytes without consuming them."""
        return bytes(self._data)

    def append(self, data: BytesLike) -> None:
        """Append bytes; text is stored as UTF-8."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._data += data

    def _check(self, length: int) -> None:
        if length < 0 or length > len(self._data):
            raise IndexError("buffer underflow")

    def retrieve(self, length: int) -> None:
        """Discard ``length`` bytes from the front."""
        self._check(length)
        del self._data[:length]

    def retrieve_all(self) -> None:
        self._data.clear()

    def retrieve_bytes(self, length: int) -> bytes:
        """Consume and return ``length`` bytes."""
        self._check(length)
        result = bytes(self._data[:length])
        del self._data[:length]
        return result

    def retrieve_as_string(self, length: int) -> str:
        """Consume ``length`` bytes and decode them as UTF-8."""
        return self.retrieve_bytes(length).decode("utf-8", errors="replace")

    def retrieve_all_as_string(self) -> str:
        return self.retrieve_as_string(len(self._data))

    def read_from(self, sock: socket.socket) -> int:
        """Receive one chunk from ``sock``; returns the byte count, 0 on EOF."""
        chunk = sock.recv(_READ_CHUNK)
        self._data += chunk
        return len(chunk)

    def write_to(self, sock: socket.socket) -> int:
        """Send as much as the socket takes; returns the count sent."""
        if not self._data:
            return 0
        sent = sock.send(self._data)
        if sent > 0:
            del self._data[:sent]
        return sent