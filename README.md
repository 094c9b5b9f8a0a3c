# gatewaykit

Building blocks for an HTTP gateway service:

- **`gatewaykit.stats`**: thread-safe counters (`Counter`, `CounterGroup`), a
  rolling sample window (`IntWindow`), `HealthStatus`, and a `MethodTracker`
  that counts calls per result category and records latencies per method.
- **`gatewaykit.trace`**: trace ids carried in a context variable
  (`trace_context`, `get_trace_id`) and parsed from header values
  (`parse_trace_id`).
- **`gatewaykit.logger`**: structured JSON logging, one object per line, with
  per-class loggers and the current trace id added to every record.
- **`gatewaykit.rpc`**: a compact `JsonEncoder`, a `JsonDecoder` that can
  enforce a byte limit, the `Handler` / `HandlerFunc` protocol and the
  `RpcError` response body.
- **`gatewaykit.rw`**: `LimitReader` and `copy_with_limit` for reading no more
  than a given number of bytes from a stream.
- **`gatewaykit.noise`**: a Noise XX session over X25519, ChaCha20-Poly1305 and
  SHA-256 (`gatewaykit.noise.session`), a CBOR codec for requests, responses
  and frames (`gatewaykit.noise.codec`), and connections plus a pooled,
  thread-safe `Client` that run over any transport you supply
  (`gatewaykit.noise.conn`).

## Installation

```
pip install gatewaykit
```

## Tracking method calls

```python
from gatewaykit.stats.instrument import MethodTracker

tracker = MethodTracker(methods=["insert", "retrieve"])
tracker.instrument("insert", lambda: "done")      # returns "done", counted as "ok"
print(tracker.stats()["insert"]["count"])         # {'ok': 1, 'error': 0, 'undefined': 0}
```

A call that raises is counted as `error` and the exception propagates. Calls
to methods not given at construction are recorded under `undefined`.
`instrument_result` takes a function returning a `TrackResult` when you want
your own result categories (pass them as `results=` to the constructor).

## Logging with trace ids

```python
from gatewaykit.logger import Level, Logger, MapFields
from gatewaykit.trace import parse_trace_id, trace_context

logger = Logger(level=Level.DEBUG).for_class("example", "Worker")
with trace_context(parse_trace_id("1234")):
    logger.info("started", MapFields({"job": "import"}))
```

Each record is a JSON object with sorted keys holding the fields, `pkg` and
`class` for class loggers, `traceId` (`-1` when none is set), `time`, `msg`
and `level`. `Logger(time_format=...)` sets a `strftime` format for `time`;
`set_output` redirects the shared output stream. `fatal` logs and then raises
`SystemExit(1)`.

## JSON bodies with a size limit

```python
import io
import sys

from gatewaykit.rpc import JsonDecoder, JsonEncoder
from gatewaykit.rw import ReadLimitProps

body = io.BytesIO(b'{"hamburger":"rare","potato":"fried"}\n')
value = JsonDecoder().decode_with_limit(body, ReadLimitProps(limit=1024, fail_on_exceed=True))

JsonEncoder().encode(sys.stdout, value)   # {"hamburger":"rare","potato":"fried"}
```

A body longer than the limit raises `LimitExceededError` from `gatewaykit.rw`
inside a `JsonDecodeError`; a truncated body fails with
`failed to decode json: unexpected EOF`.

## Noise-encrypted requests

A connection needs a requester: a callable (or an object with a `request`
method) that takes the bytes of one CBOR frame and returns the remote
endpoint's reply. The frame holds the session id and the noise message; the
reply is the remote noise message itself. The example below plays the remote
endpoint in-process with a responder `Session`:

```python
from gatewaykit.noise.codec import (
    RequestPayload,
    ResponsePayload,
    decode_frame,
    decode_request_message,
    encode_response_message,
)
from gatewaykit.noise.conn import dial_conn
from gatewaykit.noise.session import Session


class EchoEndpoint:
    def __init__(self):
        self.session = Session(initiator=False)
        self.upgraded = False

    def __call__(self, frame: bytes) -> bytes:
        message = decode_frame(frame)
        if not self.upgraded:
            self.session.read(message)
            if self.session.can_upgrade():
                self.session = self.session.upgrade()
                self.upgraded = True
                return b""
            return self.session.write(b"")
        request = decode_request_message(self.session.read(message))
        reply = ResponsePayload(success=request.args)
        return self.session.write(encode_response_message(reply))


conn = dial_conn(EchoEndpoint())
print(conn.request(RequestPayload(method="echo", args=[1, 2])))
```

`dial_client(requester, conns)` dials several connections and returns a
`Client` that spreads requests among them from any number of threads; use it
as a context manager or call `close()` when done.

## What this package does not do

- It has no message queue and no storage backend of any kind.
- It has no HTTP server, router or CORS handling: `gatewaykit.rpc` only
  provides the encoders, decoders, handler protocol and error body such a
  server would use.
- It has no network transport for Noise sessions; the requester you pass to
  `dial_conn` or `dial_client` decides how frames reach the remote endpoint.
- It installs no command-line programs.

## Running the tests

```
pip install -e ".[test]"
pytest
```