"""Protocol commands and the message record exchanged on the wire."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Union

__all__ = ["CommandType", "Message", "command_name"]


class CommandType(IntEnum):
    PUBLISH = 1
    SUBSCRIBE = 2
    UNSUBSCRIBE = 3
    FRAME = 4
    HEARTBEAT = 5
    ERROR = 6
    ACK = 7

    def __str__(self) -> str:
        return self.name


def command_name(command: int) -> str:
    """Upper-case name of a command code, or ``UNKNOWN``."""
    try:
        return CommandType(command).name
    except ValueError:
        return "UNKNOWN"


@dataclass
class Message:
    """One protocol message; ``type`` may be a raw int for unknown codes."""

    type: Union[CommandType, int] = CommandType.HEARTBEAT
    stream_id: str = ""
    sequence_number: int = 0
    timestamp_us: int = 0
    text: str = ""
    payload: bytes = b""

    @classmethod
    def publish(cls, stream_id: str, metadata: str = "") -> Message:
        return cls(type=CommandType.PUBLISH, stream_id=stream_id, text=metadata)

    @classmethod
    def subscribe(cls, stream_id: str) -> Message:
        return cls(type=CommandType.SUBSCRIBE, stream_id=stream_id)

    @classmethod
    def unsubscribe(cls, stream_id: str) -> Message:
        return cls(type=CommandType.UNSUBSCRIBE, stream_id=stream_id)

    @classmethod
    def frame(
        cls,
        stream_id: str,
        sequence_number: int,
        payload: bytes,
        timestamp_us: int,
    ) -> Message:
        return cls(
            type=CommandType.FRAME,
            stream_id=stream_id,
            sequence_number=sequence_number,
            timestamp_us=timestamp_us,
            payload=bytes(payload),
        )

    @classmethod
    def heartbeat(cls) -> Message:
        return cls(type=CommandType.HEARTBEAT)

    @classmethod
    def ack(cls, text: str = "") -> Message:
        return cls(type=CommandType.ACK, text=text)

    @classmethod
    def error(cls, text: str, stream_id: str = "") -> Message:
        return cls(type=CommandType.ERROR, text=text, stream_id=stream_id)