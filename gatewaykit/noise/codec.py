"""CBOR encoding of the messages and frames exchanged over noise sessions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import cbor2


class CodecError(ValueError):
    """A message or frame could not be encoded or decoded."""


@dataclass(frozen=True)
class RequestPayload:
    """A request: the method to invoke and its arguments."""

    method: str
    args: Any = None

    def to_wire(self) -> dict[str, Any]:
        return {"method": self.method, "args": self.args}


@dataclass(frozen=True)
class ResponsePayload:
    """A response: ``success`` holds the result, ``error`` the failure cause."""

    success: Any = None
    error: str = ""

    def to_wire(self) -> dict[str, Any]:
        return {"Success": self.success, "Error": self.error}


def _dump(value: Any) -> bytes:
    try:
        return cbor2.dumps(value)
    except (cbor2.CBOREncodeError, TypeError, ValueError) as exc:
        raise CodecError(f"failed to encode cbor: {exc}") from exc


def _load(data: bytes) -> Any:
    try:
        return cbor2.loads(bytes(data))
    except (cbor2.CBORDecodeError, TypeError, ValueError) as exc:
        raise CodecError(f"failed to decode cbor: {exc}") from exc


def _tagged_array(data: bytes, tag: str, size: int, size_message: str) -> list[Any]:
    items = _load(data)
    if not isinstance(items, list):
        raise CodecError(f"{tag.lower()} message should be an array")
    if len(items) != size:
        raise CodecError(size_message)
    if items[0] != tag:
        raise CodecError(f"first field should be {tag}")
    return items


def encode_request_message(request: RequestPayload) -> bytes:
    """Wrap a request into a request message ready to be sent."""
    return _dump({"Request": request.to_wire()})


def decode_request_message(data: bytes) -> RequestPayload:
    """Decode a request message into its payload."""
    message = _load(data)
    if not isinstance(message, dict) or not isinstance(message.get("Request"), dict):
        raise CodecError("request message should hold a Request map")

    request = message["Request"]
    method = request.get("method", "")
    if not isinstance(method, str):
        raise CodecError("request method should be a string")
    return RequestPayload(method=method, args=request.get("args"))


def encode_frame(session_id: bytes, payload: bytes) -> bytes:
    """Serialize a payload together with the session it belongs to."""
    return _dump({"session": bytes(session_id), "payload": bytes(payload)})


def decode_frame(data: bytes) -> bytes:
    """Return the payload carried by a frame."""
    frame = _load(data)
    if not isinstance(frame, dict):
        raise CodecError("frame should be a map")

    payload = frame.get("payload", b"")
    if payload is None:
        return b""
    if not isinstance(payload, (bytes, bytearray)):
        raise CodecError("frame payload should be a byte string")
    return bytes(payload)


def encode_response_message(response: ResponsePayload) -> bytes:
    """Serialize a response in the form :func:`decode_response_message` reads."""
    return _dump(["Response", {"Body": response.to_wire()}])


def decode_response_message(data: bytes) -> ResponsePayload:
    """Decode a response message received from the remote endpoint."""
    items = _tagged_array(
        data, "Response", 2, "response message should have two fields"
    )

    body = items[1]
    if not isinstance(body, dict):
        raise CodecError("response body should be a map")
    payload = body.get("Body", {})
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise CodecError("response Body should be a map")

    error = payload.get("Error", "")
    if error is None:
        error = ""
    if not isinstance(error, str):
        raise CodecError("response Error should be a string")
    return ResponsePayload(success=payload.get("Success"), error=error)


def decode_close_message(data: bytes) -> None:
    """Check that ``data`` is a close message, raising :class:`CodecError` if not."""
    _tagged_array(data, "Close", 1, "close message should have one fields")