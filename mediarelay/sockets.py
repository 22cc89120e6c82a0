"""TCP socket wrappers and helpers for exchanging framed messages."""

from __future__ import annotations

import errno
import socket
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .buffer import Buffer, BytesLike
from .codec import encode, try_decode
from .message import Message

__all__ = [
    "Socket",
    "Acceptor",
    "TcpServer",
    "Connection",
    "Channel",
    "Poller",
    "EventLoop",
    "send_message",
    "read_message",
]

_ANY_ADDRESS = "0.0.0.0"
_LOOP_TICK_SECONDS = 0.05


def _address(host: str, port: int) -> Tuple[str, int]:
    """IPv4 address for ``host``; empty, wildcard or unparsable hosts mean any."""
    if host in ("", _ANY_ADDRESS):
        return (_ANY_ADDRESS, port)
    try:
        socket.inet_pton(socket.AF_INET, host)
    except (OSError, TypeError):
        return (_ANY_ADDRESS, port)
    return (host, port)


class Socket:
    """Owns one TCP socket; closing it is idempotent."""

    def __init__(self, sock: Optional[socket.socket] = None) -> None:
        self.sock = sock

    def __repr__(self) -> str:
        return f"Socket(fd={self.fileno()})"

    @classmethod
    def create_tcp(cls) -> Socket:
        return cls(socket.socket(socket.AF_INET, socket.SOCK_STREAM))

    def fileno(self) -> int:
        """The descriptor, or -1 once closed."""
        return self.sock.fileno() if self.sock is not None else -1

    def valid(self) -> bool:
        return self.sock is not None

    def _require(self) -> socket.socket:
        if self.sock is None:
            raise OSError(errno.EBADF, "socket is closed")
        return self.sock

    def set_reuse_addr(self, enabled: bool) -> None:
        self._require().setsockopt(
            socket.SOL_SOCKET, socket.SO_REUSEADDR, 1 if enabled else 0
        )

    def bind(self, host: str, port: int) -> None:
        self._require().bind(_address(host, port))

    def listen(self, backlog: int) -> None:
        self._require().listen(backlog)

    def accept(self) -> Socket:
        conn, _peer = self._require().accept()
        return Socket(conn)

    def connect(self, host: str, port: int) -> None:
        self._require().connect(_address(host, port))

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()
            self.sock = None

    def __enter__(self) -> Socket:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


SocketLike = Union[Socket, socket.socket]


def _raw(sock: SocketLike) -> socket.socket:
    if isinstance(sock, Socket):
        return sock._require()
    return sock


def send_message(sock: SocketLike, message: Message) -> None:
    """Send the whole encoded message; raises OSError on failure."""
    _raw(sock).sendall(encode(message))


def read_message(sock: SocketLike, buffer: Buffer) -> Optional[Message]:
    """Read until one message is decoded from ``buffer``.

    Returns None when the peer closes the connection; raises DecodeError on
    malformed input. Bytes past the message stay in ``buffer``.
    """
    raw = _raw(sock)
    while True:
        message = try_decode(buffer)
        if message is not None:
            return message
        try:
            if buffer.read_from(raw) == 0:
                return None
        except ConnectionError:
            return None


class Acceptor:
    """A listening socket bound to a host and port."""

    def __init__(self, host: str, port: int, backlog: int) -> None:
        self.host = host
        self.port = port
        self.backlog = backlog
        self.socket = Socket()

    def start(self) -> None:
        self.socket.close()
        self.socket = Socket.create_tcp()
        try:
            self.socket.set_reuse_addr(True)
            self.socket.bind(self.host, self.port)
            self.socket.listen(self.backlog)
        except OSError:
            self.socket.close()
            raise

    def accept(self) -> Socket:
        return self.socket.accept()

    def close(self) -> None:
        self.socket.close()

    def fileno(self) -> int:
        return self.socket.fileno()


class TcpServer:
    """Listens for TCP connections through an Acceptor."""

    def __init__(self, host: str, port: int, backlog: int) -> None:
        self.acceptor = Acceptor(host, port, backlog)

    def start(self) -> None:
        self.acceptor.start()

    def stop(self) -> None:
        self.acceptor.close()


class Connection:
    """A connected socket with input and output buffers."""

    def __init__(self, sock: Socket) -> None:
        self.socket = sock
        self.input_buffer = Buffer()
        self.output_buffer = Buffer()

    def fileno(self) -> int:
        return self.socket.fileno()

    def send(self, data: BytesLike) -> None:
        """Queue ``data`` and write until the output buffer drains."""
        self.output_buffer.append(data)
        raw = self.socket._require()
        while len(self.output_buffer):
            if self.output_buffer.write_to(raw) <= 0:
                raise ConnectionError("peer stopped accepting data")

    def close(self) -> None:
        self.socket.close()


@dataclass(frozen=True)
class Channel:
    """A descriptor registered with a Poller."""

    fd: int = -1


class Poller:
    """Keeps the channels registered with it, in order."""

    def __init__(self) -> None:
        self._channels: List[Channel] = []

    def add_channel(self, channel: Channel) -> None:
        self._channels.append(channel)

    def channels(self) -> List[Channel]:
        return list(self._channels)


class EventLoop:
    """Runs until stopped, waking at a fixed tick."""

    def __init__(self) -> None:
        self._running = threading.Event()

    def loop(self) -> None:
        self._running.set()
        while self._running.is_set():
            time.sleep(_LOOP_TICK_SECONDS)

    def stop(self) -> None:
        self._running.clear()

    def running(self) -> bool:
        return self._running.is_set()