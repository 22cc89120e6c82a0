"""Binary framing of protocol messages.

Each message is a 32-byte big-endian header followed by the stream id,
the text and the payload.
"""

from __future__ import annotations

import struct
from typing import Optional

from .buffer import Buffer
from .message import CommandType, Message

__all__ = [
    "MAGIC",
    "VERSION",
    "HEADER_SIZE",
    "MAX_FIELD_SIZE",
    "MAX_PAYLOAD_SIZE",
    "DecodeError",
    "encode",
    "encode_to_buffer",
    "try_decode",
]

MAGIC = 0x4D524C59  # "MRLY"
VERSION = 1
HEADER_SIZE = 32
MAX_FIELD_SIZE = 64 * 1024
MAX_PAYLOAD_SIZE = 2 * 1024 * 1024

# magic, version, type, reserved, stream id len, text len, payload len, seq, ts
_HEADER = struct.Struct(">IBBHHHIQQ")


class DecodeError(ValueError):
    """The buffer holds bytes that are not a valid message."""


def encode(message: Message) -> bytes:
    """Serialise ``message`` to its wire form."""
    stream_id = message.stream_id.encode("utf-8")
    text = message.text.encode("utf-8")
    payload = bytes(message.payload)
    try:
        header = _HEADER.pack(
            MAGIC,
            VERSION,
            int(message.type),
            0,
            len(stream_id),
            len(text),
            len(payload),
            message.sequence_number,
            message.timestamp_us,
        )
    except struct.error as exc:
        raise ValueError(f"message does not fit the wire format: {exc}") from exc
    return header + stream_id + text + payload


def encode_to_buffer(message: Message, buffer: Buffer) -> None:
    buffer.append(encode(message))


def try_decode(buffer: Buffer) -> Optional[Message]:
    """Decode one message from the front of ``buffer``.

    Returns None when more data is needed; raises DecodeError on bad input.
    Bytes are consumed only when a whole message is returned.
    """
    if len(buffer) < HEADER_SIZE:
        return None

    (
        magic,
        version,
        type_code,
        _reserved,
        stream_id_length,
        text_length,
        payload_length,
        sequence_number,
        timestamp_us,
    ) = _HEADER.unpack(buffer.peek()[:HEADER_SIZE])

    if magic != MAGIC:
        raise DecodeError("invalid magic")
    if version != VERSION:
        raise DecodeError("unsupported version")
    if stream_id_length > MAX_FIELD_SIZE or text_length > MAX_FIELD_SIZE:
        raise DecodeError("field too large")
    if payload_length > MAX_PAYLOAD_SIZE:
        raise DecodeError("payload too large")

    total_size = HEADER_SIZE + stream_id_length + text_length + payload_length
    if len(buffer) < total_size:
        return None

    try:
        command: CommandType | int = CommandType(type_code)
    except ValueError:
        command = type_code

    buffer.retrieve(HEADER_SIZE)
    return Message(
        type=command,
        sequence_number=sequence_number,
        timestamp_us=timestamp_us,
        stream_id=buffer.retrieve_as_string(stream_id_length),
        text=buffer.retrieve_as_string(text_length),
        payload=buffer.retrieve_bytes(payload_length),
    )