"""Noise connections over a request/response transport, and a pool of them."""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, Protocol, Union

from gatewaykit.noise.codec import (
    RequestPayload,
    ResponsePayload,
    decode_response_message,
    encode_frame,
    encode_request_message,
)
from gatewaykit.noise.session import ReadyToUpgrade, Session

MAX_HANDSHAKE_ROUNDS = 10
REQUEST_QUEUE_SIZE = 64


class HandshakeError(Exception):
    """The noise handshake with the remote endpoint did not complete."""


class Requester(Protocol):
    """Transport that sends one frame and returns the remote endpoint's reply."""

    def request(self, data: bytes) -> bytes: ...


RequesterLike = Union[Requester, Callable[[bytes], bytes]]


def _send_function(requester: Any) -> Callable[[bytes], bytes]:
    if callable(requester):
        return requester
    send = getattr(requester, "request", None)
    if callable(send):
        return send
    raise TypeError(
        f"requester must be callable or have a request method, not {type(requester).__name__}"
    )


class Conn:
    """A noise session carried over a requester.

    A connection does not own a network connection; the requester defines
    the transport. It is not safe for concurrent use; see :class:`Client`.
    """

    def __init__(self, requester: RequesterLike, session: Session) -> None:
        self._send = _send_function(requester)
        self._session = session

    @property
    def session_id(self) -> bytes:
        return self._session.id

    def request(self, request: RequestPayload) -> ResponsePayload:
        """Send a request to the remote endpoint and return its response."""
        reply = self._exchange(encode_request_message(request))
        return decode_response_message(reply)

    def _exchange(self, data: bytes) -> bytes:
        encrypted = self._session.write(data)
        reply = self._send(encode_frame(self._session.id, encrypted))
        return self._session.read(reply)

    def _handshake(self) -> None:
        for _ in range(MAX_HANDSHAKE_ROUNDS):
            if self._session.can_upgrade():
                break
            try:
                payload = self._exchange(b"")
            except ReadyToUpgrade:
                payload = b""
            if payload:
                raise HandshakeError(
                    "noise payload not expected from remote endpoint during handshake"
                )

        if not self._session.can_upgrade():
            raise HandshakeError("handshake could not finish correctly")

        self._session = self._session.upgrade()


def dial_conn(requester: RequesterLike, initiator: bool = True) -> Conn:
    """Create a connection and complete the handshake with the remote endpoint."""
    if not initiator:
        raise ValueError("when dialing the connection has to initiate the handshake")

    conn = Conn(requester, Session(initiator=True))
    conn._handshake()
    return conn


class Client:
    """A fixed pool of connections that spreads requests among them.

    Safe to use from several threads at once.
    """

    def __init__(self, conns: list[Conn]) -> None:
        self._queue: queue.Queue[tuple[RequestPayload, Future] | None] = queue.Queue(
            maxsize=REQUEST_QUEUE_SIZE
        )
        self._lock = threading.Lock()
        self._closed = False
        self._workers = [
            threading.Thread(target=self._serve, args=(conn,), daemon=True)
            for conn in conns
        ]
        for worker in self._workers:
            worker.start()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def request(self, request: RequestPayload) -> ResponsePayload:
        """Send a request on one of the pooled connections and wait for the response."""
        future: Future = Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("client is closed")
            self._queue.put((request, future))
        return future.result()

    def close(self) -> None:
        """Stop the connection workers once the queued requests are served."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for _ in self._workers:
                self._queue.put(None)
        for worker in self._workers:
            worker.join()

    def _serve(self, conn: Conn) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                return
            request, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(conn.request(request))
            except Exception as exc:
                future.set_exception(exc)


def dial_client(
    requester: RequesterLike, conns: int, initiator: bool = True
) -> Client:
    """Dial ``conns`` connections and pool them in a :class:`Client`."""
    if conns < 1:
        raise ValueError("a client needs at least one connection")
    return Client([dial_conn(requester, initiator) for _ in range(conns)])