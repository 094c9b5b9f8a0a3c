"""Tracking of method call counts and latencies."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from gatewaykit.stats.counter import UNDEFINED, CounterGroup
from gatewaykit.stats.metrics import IntWindow, Metrics

DEFAULT_RESULTS = ("ok", "error")
DEFAULT_WINDOW_SIZE = 64


def result_type_bool(ok: bool) -> str:
    """Result category for a plain success/failure outcome."""
    ok_type, error_type = DEFAULT_RESULTS
    return ok_type if bool(ok) else error_type


@dataclass
class TrackResult:
    """Outcome of an instrumented call and the category it is counted under."""

    value: Any = None
    error: BaseException | None = None
    type: str = ""


class MethodTracker:
    """Tracks call counts per result category and latencies per method.

    Everything tracked is fixed at construction; calls to unknown methods
    are recorded under ``undefined``.
    """

    def __init__(
        self,
        methods: Iterable[str] = (),
        results: Iterable[str] = DEFAULT_RESULTS,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> None:
        results = tuple(results)
        names = [*methods, UNDEFINED]
        self._count = {name: CounterGroup(*results) for name in names}
        self._latencies = {name: IntWindow(window_size) for name in names}

    def methods(self) -> list[str]:
        return list(self._count)

    def count(self, method: str) -> CounterGroup | None:
        return self._count.get(method)

    def latencies(self, method: str) -> IntWindow | None:
        return self._latencies.get(method)

    def instrument_result(self, name: str, fn: Callable[[], TrackResult]) -> Any:
        """Call ``fn``, record its latency and result category.

        Returns the result's value, or raises its error when one is set.
        """
        start = time.perf_counter_ns()
        try:
            result = fn()
        except BaseException:
            self.store_latency(name, time.perf_counter_ns() - start)
            self.add_count(name, result_type_bool(False))
            raise
        self.store_latency(name, time.perf_counter_ns() - start)
        self.add_count(name, result.type)

        if result.error is not None:
            raise result.error
        return result.value

    def instrument(self, name: str, fn: Callable[[], Any]) -> Any:
        """Call ``fn`` counting it as ``ok`` or, if it raises, ``error``."""

        def tracked() -> TrackResult:
            try:
                value = fn()
            except Exception as exc:
                return TrackResult(error=exc, type=result_type_bool(False))
            return TrackResult(value=value, type=result_type_bool(True))

        return self.instrument_result(name, tracked)

    def add_count(self, name: str, result: str) -> None:
        self._count.get(name, self._count[UNDEFINED]).incr(result)

    def store_latency(self, name: str, latency: int) -> None:
        self._latencies.get(name, self._latencies[UNDEFINED]).add(latency)

    def stats(self) -> Metrics:
        return {
            method: {
                "count": group.stats(),
                "latency": self._latencies[method].stats(),
            }
            for method, group in self._count.items()
        }