"""Stream sessions: one publisher fanning frames out to many subscribers."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .frames import StreamFrame

__all__ = [
    "Publisher",
    "Subscriber",
    "PublishResult",
    "StreamSession",
    "StreamManager",
]

DeliveryCallback = Callable[[StreamFrame], bool]


@dataclass(frozen=True)
class Publisher:
    id: str = ""


class Subscriber:
    """A named receiver of frames; the callback says whether delivery worked."""

    def __init__(self, id: str, callback: Optional[DeliveryCallback]) -> None:
        self.id = id
        self._callback = callback

    def __repr__(self) -> str:
        return f"Subscriber({self.id!r})"

    def deliver(self, frame: StreamFrame) -> bool:
        if self._callback is None:
            return False
        return bool(self._callback(frame))


@dataclass
class PublishResult:
    delivered: int = 0
    dropped: int = 0


class StreamSession:
    """One stream: at most one publisher and any number of subscribers."""

    def __init__(self, stream_id: str) -> None:
        self.stream_id = stream_id
        self._lock = threading.Lock()
        self._publisher_id: Optional[str] = None
        self._subscribers: Dict[str, Subscriber] = {}

    def set_publisher(self, publisher_id: str) -> bool:
        """Claim the stream; False if another publisher holds it."""
        with self._lock:
            if self._publisher_id is not None and self._publisher_id != publisher_id:
                return False
            self._publisher_id = publisher_id
            return True

    def clear_publisher(self) -> None:
        with self._lock:
            self._publisher_id = None

    def add_subscriber(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers[subscriber.id] = subscriber

    def remove_subscriber(self, subscriber_id: str) -> None:
        with self._lock:
            self._subscribers.pop(subscriber_id, None)

    def publish_frame(self, frame: StreamFrame) -> PublishResult:
        """Deliver ``frame`` to every subscriber, outside the session lock."""
        with self._lock:
            subscribers = list(self._subscribers.values())
        result = PublishResult()
        for subscriber in subscribers:
            if subscriber.deliver(frame):
                result.delivered += 1
            else:
                result.dropped += 1
        return result

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def has_publisher(self) -> bool:
        with self._lock:
            return self._publisher_id is not None

    def is_idle(self) -> bool:
        with self._lock:
            return self._publisher_id is None and not self._subscribers


class StreamManager:
    """Thread-safe registry of sessions keyed by stream id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, StreamSession] = {}

    def _get_or_create(self, stream_id: str) -> StreamSession:
        with self._lock:
            session = self._sessions.get(stream_id)
            if session is None:
                session = self._sessions[stream_id] = StreamSession(stream_id)
            return session

    def _find(self, stream_id: str) -> Optional[StreamSession]:
        with self._lock:
            return self._sessions.get(stream_id)

    def _remove_if_idle(self, stream_id: str) -> None:
        with self._lock:
            session = self._sessions.get(stream_id)
            if session is not None and session.is_idle():
                del self._sessions[stream_id]

    def register_publisher(self, stream_id: str, publisher_id: str) -> bool:
        return self._get_or_create(stream_id).set_publisher(publisher_id)

    def unregister_publisher(self, stream_id: str) -> None:
        session = self._find(stream_id)
        if session is None:
            return
        session.clear_publisher()
        self._remove_if_idle(stream_id)

    def add_subscriber(self, stream_id: str, subscriber: Subscriber) -> None:
        self._get_or_create(stream_id).add_subscriber(subscriber)

    def remove_subscriber(self, stream_id: str, subscriber_id: str) -> None:
        session = self._find(stream_id)
        if session is None:
            return
        session.remove_subscriber(subscriber_id)
        self._remove_if_idle(stream_id)

    def publish_frame(self, frame: StreamFrame) -> PublishResult:
        session = self._find(frame.stream_id)
        if session is None:
            return PublishResult()
        return session.publish_frame(frame)

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def subscriber_count(self, stream_id: str) -> int:
        with self._lock:
            session = self._sessions.get(stream_id)
            return session.subscriber_count() if session is not None else 0