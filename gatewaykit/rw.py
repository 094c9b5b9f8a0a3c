"""Bounded reading and copying of byte streams."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

_COPY_CHUNK = 32 * 1024


class LimitExceededError(Exception):
    """The source holds more bytes than the allowed limit."""

    def __init__(self, message: str = "Read limit exceeded") -> None:
        super().__init__(message)


class ByteReader(Protocol):
    def read(self, size: int = -1, /) -> bytes: ...


class ByteWriter(Protocol):
    def write(self, data: bytes, /) -> object: ...


@dataclass(frozen=True)
class ReadLimitProps:
    """How a bounded read behaves.

    ``limit`` is the most bytes that may be read. With ``fail_on_exceed``
    one extra byte is probed so that a longer source raises
    :class:`LimitExceededError`. With ``err_on_eof`` a :class:`LimitReader`
    raises :class:`EOFError` once its source is exhausted instead of
    returning an empty result.
    """

    limit: int
    fail_on_exceed: bool = False
    err_on_eof: bool = False

    @property
    def reader_limit(self) -> int:
        return self.limit + 1 if self.fail_on_exceed else self.limit


class LimitReader:
    """A reader wrapper that never yields more than ``props.limit`` bytes."""

    def __init__(self, reader: ByteReader, props: ReadLimitProps) -> None:
        self._reader = reader
        self._props = props
        self._reader_limit = props.reader_limit
        self._consumed = 0

    @property
    def consumed(self) -> int:
        """Number of bytes taken from the underlying reader so far."""
        return self._consumed

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (all remaining when negative)."""
        if size == 0:
            return b""

        remaining = max(self._reader_limit - self._consumed, 0)
        wanted = remaining if size is None or size < 0 else min(size, remaining)
        data = self._reader.read(wanted) if wanted > 0 else b""

        if not data:
            if self._props.err_on_eof:
                raise EOFError("end of stream")
            return b""

        self._consumed += len(data)
        if self._props.fail_on_exceed and self._consumed > self._props.limit:
            raise LimitExceededError()
        return data


def copy_with_limit(
    writer: ByteWriter | None, reader: ByteReader | None, props: ReadLimitProps
) -> int:
    """Copy at most ``props.limit`` bytes from ``reader`` to ``writer``.

    Returns the number of bytes copied. Raises :class:`LimitExceededError`
    when the reader holds more than the limit and ``fail_on_exceed`` is set.
    """
    if reader is None:
        return 0
    if writer is None:
        raise ValueError("writer cannot be nil")

    reader_limit = props.reader_limit
    copied = 0
    while copied < reader_limit:
        chunk = reader.read(min(_COPY_CHUNK, reader_limit - copied))
        if not chunk:
            break
        writer.write(chunk)
        copied += len(chunk)

    if copied > props.limit:
        raise LimitExceededError()
    return copied