import socket
import time

import pytest

from mediarelay.buffer import Buffer
from mediarelay.config import Config
from mediarelay.message import CommandType, Message
from mediarelay.server import StreamRelayServer, main
from mediarelay.sockets import read_message, send_message


@pytest.fixture
def server():
    relay = StreamRelayServer(Config(host="127.0.0.1", port=0))
    relay.start()
    yield relay
    relay.stop()
    relay.wait()


def _connect(relay):
    return socket.create_connection(("127.0.0.1", relay.port()), timeout=5)


def _exchange(sock, message, buffer):
    send_message(sock, message)
    return read_message(sock, buffer)


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_publisher_is_acknowledged(server):
    with _connect(server) as pub:
        reply = _exchange(pub, Message.publish("demo", "text/plain"), Buffer())
    assert reply.type == CommandType.ACK
    assert reply.text == "publisher registered"


def test_frames_are_relayed_to_subscriber(server):
    with _connect(server) as sub, _connect(server) as pub:
        sub_buffer = Buffer()
        ack = _exchange(sub, Message.subscribe("demo"), sub_buffer)
        assert ack.type == CommandType.ACK
        assert ack.text == "subscriber registered"

        pub_buffer = Buffer()
        assert _exchange(pub, Message.publish("demo"), pub_buffer).type == CommandType.ACK
        send_message(pub, Message.frame("demo", 7, b"xy", 99))

        frame = read_message(sub, sub_buffer)
    assert frame.type == CommandType.FRAME
    assert frame.stream_id == "demo"
    assert frame.sequence_number == 7
    assert frame.timestamp_us == 99
    assert frame.payload == b"xy"


def test_frame_without_stream_id_uses_publisher_stream(server):
    with _connect(server) as sub, _connect(server) as pub:
        sub_buffer = Buffer()
        _exchange(sub, Message.subscribe("demo"), sub_buffer)
        _exchange(pub, Message.publish("demo"), Buffer())
        send_message(pub, Message.frame("", 3, b"a", 1))
        frame = read_message(sub, sub_buffer)
    assert frame.stream_id == "demo"
    assert frame.sequence_number == 3


def test_second_publisher_is_rejected(server):
    with _connect(server) as first, _connect(server) as second:
        assert _exchange(first, Message.publish("demo"), Buffer()).type == CommandType.ACK
        reply = _exchange(second, Message.publish("demo"), Buffer())
    assert reply.type == CommandType.ERROR
    assert reply.text == "publisher already exists"
    assert reply.stream_id == "demo"


def test_stream_is_released_when_publisher_leaves(server):
    with _connect(server) as first:
        _exchange(first, Message.publish("demo"), Buffer())
    assert _wait_until(lambda: server.stream_manager.session_count() == 0)
    with _connect(server) as second:
        reply = _exchange(second, Message.publish("demo"), Buffer())
    assert reply.type == CommandType.ACK


def test_publisher_heartbeat_is_acknowledged(server):
    with _connect(server) as pub:
        buffer = Buffer()
        _exchange(pub, Message.publish("demo"), buffer)
        reply = _exchange(pub, Message.heartbeat(), buffer)
    assert reply.type == CommandType.ACK
    assert reply.text == "heartbeat"


def test_stream_id_mismatch_closes_publisher(server):
    with _connect(server) as pub:
        buffer = Buffer()
        _exchange(pub, Message.publish("demo"), buffer)
        reply = _exchange(pub, Message.frame("other", 1, b"z", 1), buffer)
        assert reply.type == CommandType.ERROR
        assert reply.text == "stream id mismatch"
        assert read_message(pub, buffer) is None


def test_unexpected_publisher_command(server):
    with _connect(server) as pub:
        buffer = Buffer()
        _exchange(pub, Message.publish("demo"), buffer)
        reply = _exchange(pub, Message.subscribe("demo"), buffer)
    assert reply.type == CommandType.ERROR
    assert reply.text == "unexpected command for publisher"
    assert reply.stream_id == "demo"


def test_first_command_must_be_publish_or_subscribe(server):
    with _connect(server) as client:
        reply = _exchange(client, Message.heartbeat(), Buffer())
    assert reply.type == CommandType.ERROR
    assert reply.text == "first command must be publish or subscribe"
    assert reply.stream_id == ""


def test_malformed_input_closes_connection(server):
    with _connect(server) as client:
        client.sendall(b"\x00" * 32)
        assert read_message(client, Buffer()) is None


def test_slow_subscriber_is_disconnected_with_zero_queue():
    with StreamRelayServer(Config(host="127.0.0.1", port=0, max_subscriber_queue=0)) as relay:
        with _connect(relay) as sub, _connect(relay) as pub:
            sub_buffer = Buffer()
            _exchange(sub, Message.subscribe("demo"), sub_buffer)
            _exchange(pub, Message.publish("demo"), Buffer())
            send_message(pub, Message.frame("demo", 1, b"x", 1))
            assert read_message(sub, sub_buffer) is None
            assert _wait_until(lambda: relay.stream_manager.subscriber_count("demo") == 0)


def test_stop_closes_subscribers_and_listener():
    relay = StreamRelayServer(Config(host="127.0.0.1", port=0))
    with relay:
        port = relay.port()
        sub = _connect(relay)
        buffer = Buffer()
        _exchange(sub, Message.subscribe("demo"), buffer)
    with sub:
        assert read_message(sub, buffer) is None
    with pytest.raises(OSError):
        socket.create_connection(("127.0.0.1", port), timeout=1)


def test_start_fails_when_port_is_taken(server):
    other = StreamRelayServer(Config(host="127.0.0.1", port=server.port()))
    with pytest.raises(OSError):
        other.start()


def test_main_rejects_unknown_argument(capsys):
    assert main(["--bogus"]) == 1
    assert "unknown argument: --bogus" in capsys.readouterr().err


def test_main_reports_start_failure(server, capsys):
    assert main(["--host", "127.0.0.1", "--port", str(server.port())]) == 1
    assert "failed to start stream relay server" in capsys.readouterr().err