"""Media frames and the queueing policy for slow subscribers."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum, auto

from .message import Message

__all__ = ["StreamFrame", "OverflowAction", "BackpressurePolicy"]


@dataclass
class StreamFrame:
    """One frame of a stream as relayed to subscribers."""

    stream_id: str = ""
    sequence_number: int = 0
    timestamp_us: int = 0
    payload: bytes = b""

    def size_bytes(self) -> int:
        return len(self.payload)

    def to_message(self) -> Message:
        return Message.frame(
            self.stream_id, self.sequence_number, self.payload, self.timestamp_us
        )

    @classmethod
    def from_message(cls, message: Message) -> StreamFrame:
        return cls(
            stream_id=message.stream_id,
            sequence_number=message.sequence_number,
            timestamp_us=message.timestamp_us,
            payload=bytes(message.payload),
        )


class OverflowAction(Enum):
    ENQUEUED = auto()
    DROPPED_OLDEST = auto()
    DROPPED_NEWEST = auto()
    DISCONNECT = auto()


@dataclass(frozen=True)
class BackpressurePolicy:
    """Bounds a subscriber queue, dropping the oldest frame or disconnecting."""

    max_queue_depth: int = 64
    disconnect_on_overflow: bool = False

    def push_frame(self, queue: deque, frame: StreamFrame) -> OverflowAction:
        if self.max_queue_depth == 0:
            return OverflowAction.DISCONNECT
        if len(queue) < self.max_queue_depth:
            queue.append(frame)
            return OverflowAction.ENQUEUED
        if self.disconnect_on_overflow:
            return OverflowAction.DISCONNECT
        queue.popleft()
        queue.append(frame)
        return OverflowAction.DROPPED_OLDEST