"""Structured JSON logging with per-class loggers and trace identifiers."""

from __future__ import annotations

import copy
import json
import sys
import threading
from collections.abc import Mapping
from datetime import datetime
from enum import IntEnum
from typing import IO, Any, Protocol

from gatewaykit.trace import get_trace_id

_RESERVED_KEYS = ("time", "msg", "level")


class Level(IntEnum):
    """Log levels; a lower value is more severe."""

    PANIC = 0
    FATAL = 1
    ERROR = 2
    WARN = 3
    INFO = 4
    DEBUG = 5
    TRACE = 6

    @property
    def label(self) -> str:
        return "warning" if self is Level.WARN else self.name.lower()


class Fields(Protocol):
    def add(self, key: str, value: Any) -> None: ...


class _FieldSet(dict):
    def add(self, key: str, value: Any) -> None:
        self[key] = value


class MapFields(dict):
    """A mapping of fields that adds itself to a log record."""

    def log(self, fields: Fields) -> None:
        for key, value in self.items():
            fields.add(key, value)


def _escape_html(text: str) -> str:
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


class _Sink:
    def __init__(self, level: Level, output: IO[str], time_format: str | None) -> None:
        self.level = level
        self.output = output
        self.time_format = time_format
        self.lock = threading.Lock()

    def timestamp(self) -> str:
        if self.time_format is None:
            return datetime.now().astimezone().isoformat(timespec="seconds")
        return datetime.now().strftime(self.time_format)

    def emit(self, level: Level, msg: str, data: dict[str, Any]) -> None:
        for key in _RESERVED_KEYS:
            if key in data:
                data["fields." + key] = data.pop(key)
        data = {
            key: str(value) if isinstance(value, BaseException) else value
            for key, value in data.items()
        }
        data["time"] = self.timestamp()
        data["msg"] = msg
        data["level"] = level.label
        line = json.dumps(
            data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
        )
        with self.lock:
            self.output.write(_escape_html(line) + "\n")
            flush = getattr(self.output, "flush", None)
            if flush is not None:
                flush()


class Logger:
    """Writes one JSON object per record, adding the current trace id."""

    def __init__(
        self,
        level: Level = Level.INFO,
        output: IO[str] | None = None,
        time_format: str | None = None,
    ) -> None:
        self._sink = _Sink(Level(level), output if output is not None else sys.stdout, time_format)
        self._base: dict[str, Any] = {}

    def for_class(self, pkg: str, cls: str) -> "Logger":
        """Return a logger sharing this one's output that tags records with pkg and class."""
        child = copy.copy(self)
        child._base = {"pkg": pkg, "class": cls}
        return child

    def set_output(self, stream: IO[str]) -> None:
        """Redirect output for this logger and every logger derived from its root."""
        self._sink.output = stream

    def debug(self, msg: str, *args: Any) -> None:
        self._log(Level.DEBUG, msg, args)

    def info(self, msg: str, *args: Any) -> None:
        self._log(Level.INFO, msg, args)

    def warn(self, msg: str, *args: Any) -> None:
        self._log(Level.WARN, msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._log(Level.ERROR, msg, args)

    def fatal(self, msg: str, *args: Any) -> None:
        """Log the record and terminate with exit status 1."""
        self._log(Level.FATAL, msg, args)
        raise SystemExit(1)

    def _log(self, level: Level, msg: str, loggables: tuple[Any, ...]) -> None:
        if level > self._sink.level:
            return
        fields = _FieldSet(self._base)
        for loggable in loggables:
            log = getattr(loggable, "log", None)
            if callable(log):
                log(fields)
            elif isinstance(loggable, Mapping):
                fields.update(loggable)
            else:
                raise TypeError(f"cannot log object of type {type(loggable).__name__}")
        fields.add("traceId", get_trace_id())
        self._sink.emit(level, msg, dict(fields))