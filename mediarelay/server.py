"""The relay server: publishers push frames, subscribers receive them."""

from __future__ import annotations

import itertools
import signal
import socket
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional, Sequence

from . import logger
from .buffer import Buffer
from .codec import DecodeError
from .config import Config
from .frames import BackpressurePolicy, OverflowAction, StreamFrame
from .message import CommandType, Message
from .sessions import StreamManager, Subscriber
from .sockets import Socket, read_message, send_message

__all__ = ["StreamRelayServer", "main"]

_POLL_SECONDS = 0.2
_ACCEPT_RETRY_SECONDS = 0.02


@dataclass
class _SubscriberQueue:
    condition: threading.Condition = field(default_factory=threading.Condition)
    frames: Deque[StreamFrame] = field(default_factory=deque)
    active: bool = True


def _send(sock: socket.socket, message: Message) -> bool:
    try:
        send_message(sock, message)
    except OSError:
        return False
    return True


def _receive(sock: socket.socket, buffer: Buffer) -> Optional[Message]:
    try:
        return read_message(sock, buffer)
    except DecodeError as exc:
        logger.warn(f"closing malformed connection: {exc}")
    except OSError:
        pass
    return None


class StreamRelayServer:
    """Accepts TCP clients and relays frames from publishers to subscribers."""

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config if config is not None else Config()
        self.stream_manager = StreamManager()
        self.backpressure_policy = BackpressurePolicy(
            self.config.max_subscriber_queue,
            self.config.disconnect_slow_subscriber,
        )
        self._running = threading.Event()
        self._state_lock = threading.Lock()
        self._listen_socket = Socket()
        self._accept_thread: Optional[threading.Thread] = None
        self._connection_ids = itertools.count(1)
        self._id_lock = threading.Lock()

    def start(self) -> None:
        """Bind, listen and start accepting; raises OSError on failure."""
        if self._running.is_set():
            raise RuntimeError("server already running")
        listener = Socket.create_tcp()
        try:
            listener.set_reuse_addr(True)
            listener.bind(self.config.host, self.config.port)
            listener.listen(self.config.backlog)
        except OSError:
            listener.close()
            raise
        raw = listener.sock
        raw.settimeout(_POLL_SECONDS)
        self._listen_socket = listener
        self._running.set()
        self._accept_thread = threading.Thread(
            target=self._accept_loop, args=(raw,), name="relay-accept", daemon=True
        )
        self._accept_thread.start()
        logger.info(f"stream relay listening on {self.config.host}:{self.port()}")

    def stop(self) -> None:
        """Stop accepting and close the listening socket; safe to repeat."""
        with self._state_lock:
            if not self._running.is_set():
                return
            self._running.clear()
        raw = self._listen_socket.sock
        if raw is not None:
            try:
                raw.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._listen_socket.close()

    def wait(self) -> None:
        """Block until the accept thread has finished."""
        if self._accept_thread is not None:
            self._accept_thread.join()

    def port(self) -> int:
        """The port actually listened on, or the configured one when closed."""
        raw = self._listen_socket.sock
        if raw is None:
            return self.config.port
        return raw.getsockname()[1]

    def __enter__(self) -> StreamRelayServer:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()
        self.wait()

    def _accept_loop(self, listener: socket.socket) -> None:
        while self._running.is_set():
            try:
                client, _peer = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._running.is_set():
                    time.sleep(_ACCEPT_RETRY_SECONDS)
                continue
            client.setblocking(True)
            with self._id_lock:
                connection_id = f"conn-{next(self._connection_ids)}"
            threading.Thread(
                target=self._handle_client,
                args=(client, connection_id),
                name=connection_id,
                daemon=True,
            ).start()

    def _handle_client(self, client: socket.socket, connection_id: str) -> None:
        with client:
            buffer = Buffer()
            first = _receive(client, buffer)
            if first is None:
                return
            if first.type == CommandType.PUBLISH:
                self._serve_publisher(client, connection_id, buffer, first.stream_id)
            elif first.type == CommandType.SUBSCRIBE:
                self._serve_subscriber(client, connection_id, first.stream_id)
            else:
                _send(client, Message.error("first command must be publish or subscribe"))

    def _serve_publisher(
        self,
        client: socket.socket,
        connection_id: str,
        buffer: Buffer,
        stream_id: str,
    ) -> None:
        if not self.stream_manager.register_publisher(stream_id, connection_id):
            _send(client, Message.error("publisher already exists", stream_id))
            return

        _send(client, Message.ack("publisher registered"))
        logger.info(f"{connection_id} publishing stream {stream_id}")
        try:
            while self._running.is_set():
                message = _receive(client, buffer)
                if message is None:
                    break
                if message.type == CommandType.FRAME:
                    if not message.stream_id:
                        message.stream_id = stream_id
                    if message.stream_id != stream_id:
                        _send(client, Message.error("stream id mismatch", stream_id))
                        break
                    result = self.stream_manager.publish_frame(
                        StreamFrame.from_message(message)
                    )
                    if result.dropped > 0:
                        logger.warn(
                            f"dropped delivery to {result.dropped} subscriber(s) "
                            f"on stream {stream_id}"
                        )
                elif message.type == CommandType.HEARTBEAT:
                    _send(client, Message.ack("heartbeat"))
                else:
                    _send(
                        client,
                        Message.error("unexpected command for publisher", stream_id),
                    )
                    break
        finally:
            self.stream_manager.unregister_publisher(stream_id)
            logger.info(f"{connection_id} disconnected from publisher stream {stream_id}")

    def _serve_subscriber(
        self, client: socket.socket, connection_id: str, stream_id: str
    ) -> None:
        queue = _SubscriberQueue()

        def deliver(frame: StreamFrame) -> bool:
            with queue.condition:
                if not queue.active:
                    return False
                action = self.backpressure_policy.push_frame(queue.frames, frame)
                if action is OverflowAction.DISCONNECT:
                    queue.active = False
                    queue.condition.notify_all()
                    return False
                queue.condition.notify()
                return True

        self.stream_manager.add_subscriber(stream_id, Subscriber(connection_id, deliver))
        _send(client, Message.ack("subscriber registered"))
        logger.info(f"{connection_id} subscribed to stream {stream_id}")

        def ready() -> bool:
            return not queue.active or bool(queue.frames) or not self._running.is_set()

        try:
            while self._running.is_set():
                with queue.condition:
                    if not queue.condition.wait_for(ready, timeout=_POLL_SECONDS):
                        continue
                    if not queue.active or not self._running.is_set():
                        break
                    frame = queue.frames.popleft()
                if not _send(client, frame.to_message()):
                    break
        finally:
            with queue.condition:
                queue.active = False
                queue.condition.notify_all()
            self.stream_manager.remove_subscriber(stream_id, connection_id)
            logger.info(f"{connection_id} unsubscribed from stream {stream_id}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the relay until SIGINT or SIGTERM; returns the exit status."""
    arguments = sys.argv[1:] if argv is None else list(argv)
    try:
        config = Config.from_argv(arguments)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1

    server = StreamRelayServer(config)
    try:
        server.start()
    except OSError:
        print("failed to start stream relay server", file=sys.stderr)
        return 1

    stop_requested = threading.Event()

    def request_stop(signum: int, frame: object) -> None:
        stop_requested.set()

    previous = {
        signum: signal.signal(signum, request_stop)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        while not stop_requested.wait(_POLL_SECONDS):
            pass
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
        server.stop()
        server.wait()
    return 0


if __name__ == "__main__":
    sys.exit(main())