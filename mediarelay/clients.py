"""Command-line publisher and subscriber clients for the relay."""

from __future__ import annotations

import sys
import time
from typing import Optional, Sequence

from .buffer import Buffer
from .codec import DecodeError
from .message import CommandType, Message
from .sockets import Socket, read_message, send_message
from .timestamp import Timestamp

__all__ = ["publisher_main", "subscriber_main"]

_FRAME_INTERVAL_SECONDS = 0.2
_DEFAULT_FRAME_COUNT = 10
_PORT_MASK = 0xFFFF


def _error(text: str) -> None:
    print(text, file=sys.stderr)


def _receive(sock: Socket, buffer: Buffer) -> Optional[Message]:
    try:
        return read_message(sock, buffer)
    except (DecodeError, OSError):
        return None


def _connect(host: str, port: int) -> Optional[Socket]:
    try:
        sock = Socket.create_tcp()
    except OSError:
        return None
    try:
        sock.connect(host, port)
    except OSError:
        sock.close()
        return None
    return sock


def publisher_main(argv: Optional[Sequence[str]] = None) -> int:
    """Publish numbered text frames to a stream; returns the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 3:
        _error("usage: publisher_client <host> <port> <stream_id> [frame_count]")
        return 1

    host, port_text, stream_id = args[:3]
    try:
        port = int(port_text) & _PORT_MASK
        frame_count = int(args[3]) if len(args) >= 4 else _DEFAULT_FRAME_COUNT
    except ValueError as exc:
        _error(f"invalid argument: {exc}")
        return 1

    sock = _connect(host, port)
    if sock is None:
        _error("failed to connect to relay server")
        return 1

    with sock:
        try:
            send_message(sock, Message.publish(stream_id, "text/plain"))
        except OSError:
            _error("failed to send publish command")
            return 1

        buffer = Buffer()
        response = _receive(sock, buffer)
        if response is None:
            _error("publish rejected: failed to read server response")
            return 1
        if response.type == CommandType.ERROR:
            _error(f"publish rejected: {response.text}")
            return 1

        for index in range(frame_count):
            payload = f"frame-{index}".encode("utf-8")
            message = Message.frame(
                stream_id, index + 1, payload, Timestamp.now().microseconds
            )
            try:
                send_message(sock, message)
            except OSError:
                _error(f"failed to send frame {index}")
                return 1
            print(f"published frame {index + 1}", flush=True)
            time.sleep(_FRAME_INTERVAL_SECONDS)

    return 0


def subscriber_main(argv: Optional[Sequence[str]] = None) -> int:
    """Print the frames of a stream until the relay closes it."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 3:
        _error("usage: subscriber_client <host> <port> <stream_id>")
        return 1

    host, port_text, stream_id = args[:3]
    try:
        port = int(port_text) & _PORT_MASK
    except ValueError as exc:
        _error(f"invalid argument: {exc}")
        return 1

    sock = _connect(host, port)
    if sock is None:
        _error("failed to connect to relay server")
        return 1

    with sock:
        try:
            send_message(sock, Message.subscribe(stream_id))
        except OSError:
            _error("failed to send subscribe command")
            return 1

        buffer = Buffer()
        response = _receive(sock, buffer)
        if response is None:
            _error("subscribe rejected: failed to read server response")
            return 1
        if response.type == CommandType.ERROR:
            _error(f"subscribe rejected: {response.text}")
            return 1

        print(f"subscribed to stream {stream_id}", flush=True)
        while (message := _receive(sock, buffer)) is not None:
            if message.type != CommandType.FRAME:
                continue
            payload = message.payload.decode("utf-8", errors="replace")
            print(
                f"frame seq={message.sequence_number} ts={message.timestamp_us} "
                f'payload="{payload}"',
                flush=True,
            )

    _error("stream closed")
    return 0


if __name__ == "__main__":
    sys.exit(subscriber_main())