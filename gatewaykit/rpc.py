"""RPC error payloads, handlers and JSON encoding of request/response bodies."""

from __future__ import annotations

import dataclasses
import io
import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from gatewaykit.rw import LimitExceededError, LimitReader, ReadLimitProps

_JSON_WHITESPACE = " \t\r\n"
_DECODER = json.JSONDecoder()


class RpcError(Exception):
    """Error returned by the server when it fails to satisfy a request."""

    def __init__(self, error_code: int, description: str) -> None:
        super().__init__(description)
        self.error_code = error_code
        self.description = description

    def __str__(self) -> str:
        return self.description

    def to_dict(self) -> dict[str, Any]:
        return {"errorCode": self.error_code, "description": self.description}


class JsonDecodeError(ValueError):
    """A JSON payload could not be decoded."""


class JsonEncodeError(ValueError):
    """A value could not be encoded as JSON."""


class Handler(ABC):
    """Handles an RPC request and returns the response."""

    @abstractmethod
    def handle(self, request: Any) -> Any: ...


class HandlerFunc(Handler):
    """Lets a plain callable act as a :class:`Handler`."""

    def __init__(self, fn: Callable[[Any], Any]) -> None:
        self._fn = fn

    def handle(self, request: Any) -> Any:
        return self._fn(request)


def _prepare(value: Any) -> Any:
    """Shape a value for JSON: mappings sorted by key, records in field order."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return {key: _prepare(item) for key, item in to_dict().items()}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            field.name: _prepare(getattr(value, field.name))
            for field in dataclasses.fields(value)
        }
    if isinstance(value, Mapping):
        return {
            str(key): _prepare(value[key]) for key in sorted(value, key=str)
        }
    if isinstance(value, (list, tuple)):
        return [_prepare(item) for item in value]
    return value


def _escape_html(text: str) -> str:
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


class JsonEncoder:
    """Serializes values as compact JSON followed by a newline."""

    def encode(self, writer: Any, value: Any) -> None:
        try:
            text = json.dumps(
                _prepare(value), separators=(",", ":"), ensure_ascii=False, allow_nan=False
            )
        except (TypeError, ValueError) as exc:
            raise JsonEncodeError(f"failed to encode json: {exc}") from exc

        line = _escape_html(text) + "\n"
        if isinstance(writer, io.TextIOBase):
            writer.write(line)
        else:
            writer.write(line.encode("utf-8"))


def _read_all(reader: Any) -> str:
    chunks: list[Any] = []
    while True:
        try:
            chunk = reader.read(-1)
        except EOFError:
            break
        if not chunk:
            break
        chunks.append(chunk)

    if chunks and isinstance(chunks[0], str):
        return "".join(chunks)
    return b"".join(chunks).decode("utf-8", errors="replace")


class JsonDecoder:
    """Decodes the first JSON value found in a reader."""

    def decode(self, reader: Any) -> Any:
        try:
            text = _read_all(reader)
        except (LimitExceededError, OSError) as exc:
            raise JsonDecodeError(f"failed to decode json: {exc}") from exc

        body = text.lstrip(_JSON_WHITESPACE)
        if not body:
            raise JsonDecodeError("failed to decode json: EOF")

        try:
            value, _ = _DECODER.raw_decode(body)
        except json.JSONDecodeError as exc:
            truncated = exc.msg.startswith("Unterminated string") or exc.pos >= len(
                body.rstrip(_JSON_WHITESPACE)
            )
            reason = "unexpected EOF" if truncated else exc.msg
            raise JsonDecodeError(f"failed to decode json: {reason}") from exc
        return value

    def decode_with_limit(self, reader: Any, props: ReadLimitProps) -> Any:
        """Decode while reading no more than ``props.limit`` bytes."""
        limited = LimitReader(reader, dataclasses.replace(props, err_on_eof=True))
        return self.decode(limited)