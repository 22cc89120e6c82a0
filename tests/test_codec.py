import struct

import pytest

from mediarelay.buffer import Buffer
from mediarelay.codec import (
    HEADER_SIZE,
    MAX_PAYLOAD_SIZE,
    DecodeError,
    encode,
    encode_to_buffer,
    try_decode,
)
from mediarelay.message import CommandType, Message


def test_round_trips_a_media_frame_message():
    source = Message.frame("live/stream", 42, b"abc", 123456)
    buffer = Buffer()
    encode_to_buffer(source, buffer)

    output = try_decode(buffer)
    assert output is not None
    assert output.type is CommandType.FRAME
    assert output.stream_id == "live/stream"
    assert output.sequence_number == 42
    assert output.timestamp_us == 123456
    assert output.payload == b"abc"
    assert len(buffer) == 0


def test_waits_for_a_complete_frame_before_decoding():
    encoded = encode(Message.subscribe("demo"))
    buffer = Buffer()
    buffer.append(encoded[:5])
    assert try_decode(buffer) is None

    buffer.append(encoded[5:])
    output = try_decode(buffer)
    assert output is not None
    assert output.type is CommandType.SUBSCRIBE
    assert output.stream_id == "demo"


def test_header_only_partial_body_needs_more_data():
    encoded = encode(Message.publish("demo", "text/plain"))
    buffer = Buffer()
    buffer.append(encoded[:-1])
    assert try_decode(buffer) is None
    assert len(buffer) == len(encoded) - 1


def test_wire_layout_starts_with_magic_and_version():
    encoded = encode(Message.heartbeat())
    assert len(encoded) == HEADER_SIZE
    assert encoded[:4] == b"MRLY"
    assert encoded[4] == 1
    assert encoded[5] == CommandType.HEARTBEAT


def test_every_field_round_trips():
    source = Message.error("publisher already exists", "demo")
    source.sequence_number = 7
    source.timestamp_us = 99
    source.payload = b"\x00\xff"
    buffer = Buffer()
    buffer.append(encode(source))
    assert try_decode(buffer) == source


def test_decodes_messages_back_to_back():
    buffer = Buffer()
    encode_to_buffer(Message.ack("heartbeat"), buffer)
    encode_to_buffer(Message.unsubscribe("demo"), buffer)
    assert try_decode(buffer) == Message.ack("heartbeat")
    assert try_decode(buffer) == Message.unsubscribe("demo")
    assert try_decode(buffer) is None


def test_unknown_command_code_is_kept_as_int():
    encoded = bytearray(encode(Message.heartbeat()))
    encoded[5] = 99
    buffer = Buffer()
    buffer.append(bytes(encoded))
    output = try_decode(buffer)
    assert output is not None
    assert output.type == 99


def test_invalid_magic():
    encoded = bytearray(encode(Message.heartbeat()))
    encoded[0] = 0
    buffer = Buffer()
    buffer.append(bytes(encoded))
    with pytest.raises(DecodeError, match="invalid magic"):
        try_decode(buffer)


def test_unsupported_version():
    encoded = bytearray(encode(Message.heartbeat()))
    encoded[4] = 2
    buffer = Buffer()
    buffer.append(bytes(encoded))
    with pytest.raises(DecodeError, match="unsupported version"):
        try_decode(buffer)


def test_payload_too_large_is_rejected_from_header_alone():
    encoded = bytearray(encode(Message.heartbeat()))
    encoded[12:16] = struct.pack(">I", MAX_PAYLOAD_SIZE + 1)
    buffer = Buffer()
    buffer.append(bytes(encoded))
    with pytest.raises(DecodeError, match="payload too large"):
        try_decode(buffer)


def test_encode_rejects_oversized_stream_id():
    with pytest.raises(ValueError):
        encode(Message.subscribe("x" * 70000))