# mediarelay

mediarelay is a small, low-latency TCP relay for media streams. Publishers
push frames for a named stream. The relay sends every frame to all
subscribers of that stream. Each subscriber has a bounded queue. When a slow
subscriber falls behind, the relay either drops the oldest frame in its queue
or disconnects it.

The package uses only the standard library.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

## Running the relay

```
stream-relay-server [--host HOST] [--port PORT] [--backlog N] [--queue N] [--disconnect-slow-subscriber]
```

The defaults are host `0.0.0.0`, port `9000`, backlog `128` and a subscriber
queue depth of `64`. By default, a full queue drops its oldest frame.
`--disconnect-slow-subscriber` closes lagging subscribers instead. A queue
depth of `0` disconnects a subscriber as soon as a frame arrives for it.

An unknown option, an option with no value or a value that is not a number is
reported on standard error, and the command exits with status 1. It also
exits with status 1 if the server cannot bind or listen. The server runs
until it gets SIGINT (Ctrl-C) or SIGTERM.

Log lines go to standard error in the form
`YYYY-MM-DD HH:MM:SS [LEVEL] message`.

## Example clients

Subscribe to a stream and print every frame that arrives:

```
subscriber-client 127.0.0.1 9000 live/demo
```

Each frame is printed as `frame seq=N ts=MICROSECONDS payload="..."`. When
the relay closes the connection, the client prints `stream closed`.

Publish text frames `frame-0`, `frame-1`, … (10 by default), one every 200 ms:

```
publisher-client 127.0.0.1 9000 live/demo 25
```

Both clients exit with status 1 in these cases: the arguments are missing,
the connection fails, or the relay answers the first command with an
`ERROR` message.

## Wire protocol

Every message starts with a 32-byte big-endian header:

| offset | size | field                       |
|--------|------|-----------------------------|
| 0      | 4    | magic `0x4d524c59` ("MRLY") |
| 4      | 1    | version (1)                 |
| 5      | 1    | command type                |
| 6      | 2    | reserved (0)                |
| 8      | 2    | stream id length            |
| 10     | 2    | text length                 |
| 12     | 4    | payload length              |
| 16     | 8    | sequence number             |
| 24     | 8    | timestamp (microseconds)    |

The stream id (UTF-8), the text (UTF-8) and the payload follow the header in
that order. A stream id or a text may be at most 64 KiB. A payload may be at
most 2 MiB.

The commands are `PUBLISH` (1), `SUBSCRIBE` (2), `UNSUBSCRIBE` (3),
`FRAME` (4), `HEARTBEAT` (5), `ERROR` (6) and `ACK` (7).

The relay works as follows:

- The first message on a connection must be `PUBLISH` or `SUBSCRIBE`.
  Otherwise the relay answers with `ERROR` and closes the connection.
- Only one publisher may hold a stream at a time. A second publisher gets
  `ERROR "publisher already exists"`.
- A publisher may send `FRAME` messages and `HEARTBEAT` messages. The relay
  answers each `HEARTBEAT` with `ACK`. An empty stream id on a frame means the
  publisher's own stream. A frame for a different stream, or any other
  command, gets an `ERROR` and ends the connection.
- A subscriber receives `FRAME` messages until it disconnects, until its
  queue overflows under the disconnect policy, or until the server stops.
- Malformed input closes the connection.

## Library use

```python
from mediarelay.buffer import Buffer
from mediarelay.codec import encode_to_buffer, try_decode
from mediarelay.message import Message

buffer = Buffer()
encode_to_buffer(Message.frame("live/demo", 1, b"abc", 123456), buffer)
message = try_decode(buffer)   # None until a whole message is buffered
```

`try_decode` raises `mediarelay.codec.DecodeError` (a `ValueError`) on
malformed data. Bytes are consumed only when a whole message is returned.

Other modules of the package:

- `mediarelay.sockets` has `send_message` and `read_message` for framed
  messages on a socket, and the `Socket`, `Acceptor`, `TcpServer` and
  `Connection` wrappers.
- `mediarelay.sessions` provides `StreamManager` and `Subscriber` for fan-out
  within one process. `StreamManager.publish_frame` returns a `PublishResult`
  with `delivered` and `dropped` counts.
- `mediarelay.frames` provides `StreamFrame` and `BackpressurePolicy`.
  `BackpressurePolicy.push_frame` returns an `OverflowAction`.
- `mediarelay.server` provides `StreamRelayServer`, which is also a context
  manager. Use port `0` to listen on a free port, and `port()` to find out
  which one it is.

## Limitations

- Only IPv4 is supported, and host names are not resolved. Give hosts as
  dotted addresses. A host that is not one is treated as `0.0.0.0`.
- The relay does not act on `UNSUBSCRIBE`. A subscriber leaves by closing
  its connection.
- There is no authentication, no encryption and no recording. Frames are
  only relayed to subscribers that are connected at the time.