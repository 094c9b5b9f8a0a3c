import threading
from concurrent.futures import ThreadPoolExecutor

import cbor2
import pytest

from gatewaykit.noise.codec import (
    RequestPayload,
    ResponsePayload,
    decode_frame,
    decode_request_message,
    encode_response_message,
)
from gatewaykit.noise.conn import (
    Client,
    HandshakeError,
    dial_client,
    dial_conn,
)
from gatewaykit.noise.session import Session


class FakeServer:
    """Remote endpoint answering frames with a responder noise session per client."""

    def __init__(self, handler=None, handshake_payload=b""):
        self.handler = handler or (lambda req: ResponsePayload(success=req.args))
        self.handshake_payload = handshake_payload
        self.handshakes = {}
        self.transports = {}
        self.frames = 0
        self.lock = threading.Lock()

    def __call__(self, frame):
        with self.lock:
            self.frames += 1
            session_id = cbor2.loads(frame)["session"]
            payload = decode_frame(frame)

            if session_id in self.transports:
                session = self.transports[session_id]
                request = decode_request_message(session.read(payload))
                return session.write(encode_response_message(self.handler(request)))

            session = self.handshakes.setdefault(session_id, Session(initiator=False))
            session.read(payload)
            if session.can_upgrade():
                self.transports[session_id] = session.upgrade()
                del self.handshakes[session_id]
                return b""
            return session.write(self.handshake_payload)


class RequesterObject:
    def __init__(self, server):
        self.server = server

    def request(self, data):
        return self.server(data)


def test_dial_conn_requires_initiator():
    with pytest.raises(ValueError, match="has to initiate the handshake"):
        dial_conn(FakeServer(), initiator=False)


def test_dial_conn_completes_handshake():
    server = FakeServer()
    conn = dial_conn(server)
    assert list(server.transports) == [conn.session_id]
    assert server.handshakes == {}
    assert server.frames == 2


def test_conn_request_round_trip():
    conn = dial_conn(FakeServer())
    args = {"key": "value", "items": [1, 2, 3]}
    response = conn.request(RequestPayload(method="echo", args=args))
    assert response == ResponsePayload(success=args, error="")


def test_conn_sequential_requests():
    conn = dial_conn(FakeServer())
    for n in range(5):
        assert conn.request(RequestPayload(method="echo", args=n)).success == n


def test_conn_error_response():
    server = FakeServer(handler=lambda req: ResponsePayload(error="failed " + req.method))
    conn = dial_conn(server)
    response = conn.request(RequestPayload(method="call"))
    assert response.error == "failed call"
    assert response.success is None


def test_conn_handler_receives_method():
    seen = []

    def handler(req):
        seen.append(req)
        return ResponsePayload(success="done")

    conn = dial_conn(FakeServer(handler=handler))
    assert conn.request(RequestPayload(method="method", args=["a"])).success == "done"
    assert seen == [RequestPayload(method="method", args=["a"])]


def test_conn_accepts_requester_object():
    conn = dial_conn(RequesterObject(FakeServer()))
    assert conn.request(RequestPayload(method="echo", args="x")).success == "x"


def test_dial_conn_rejects_non_requester():
    with pytest.raises(TypeError):
        dial_conn(42)


def test_handshake_payload_not_expected():
    with pytest.raises(HandshakeError, match="payload not expected"):
        dial_conn(FakeServer(handshake_payload=b"unexpected"))


def test_handshake_garbage_reply():
    with pytest.raises(ValueError):
        dial_conn(lambda frame: b"\x00" * 5)


def test_handshake_transport_failure_propagates():
    def failing(frame):
        raise ConnectionError("transport down")

    with pytest.raises(ConnectionError, match="transport down"):
        dial_conn(failing)


def test_conn_request_transport_failure_then_recovers():
    fail = {"on": False}
    server = FakeServer()

    def requester(frame):
        if fail["on"]:
            raise ConnectionError("transport down")
        return server(frame)

    conn = dial_conn(requester)
    fail["on"] = True
    with pytest.raises(ConnectionError):
        conn.request(RequestPayload(method="echo", args=1))


def test_dial_client_needs_connections():
    with pytest.raises(ValueError):
        dial_client(FakeServer(), 0)


def test_client_dials_all_connections():
    server = FakeServer()
    with dial_client(server, 3):
        assert len(server.transports) == 3


def test_client_concurrent_requests():
    server = FakeServer()
    with dial_client(server, 3) as client:
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(
                    lambda n: client.request(RequestPayload(method="echo", args=n)),
                    range(20),
                )
            )
    assert [r.success for r in results] == list(range(20))


def test_client_propagates_errors():
    def handler(req):
        raise RuntimeError("handler failed")

    client = dial_client(FakeServer(handler=handler), 1)
    try:
        with pytest.raises(RuntimeError, match="handler failed"):
            client.request(RequestPayload(method="echo"))
    finally:
        client.close()


def test_client_request_after_close():
    client = dial_client(FakeServer(), 2)
    client.close()
    with pytest.raises(RuntimeError, match="closed"):
        client.request(RequestPayload(method="echo"))


def test_client_close_is_idempotent():
    client = Client([dial_conn(FakeServer())])
    client.close()
    client.close()
    with pytest.raises(RuntimeError):
        client.request(RequestPayload(method="echo"))


def test_dial_client_requires_initiator():
    with pytest.raises(ValueError, match="has to initiate the handshake"):
        dial_client(FakeServer(), 1, initiator=False)