"""Metric types, averaging helpers and a sliding sample window."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Sequence
from enum import IntEnum
from typing import Any

Metrics = dict[str, Any]


class HealthStatus(IntEnum):
    """Health of a service as advertised to a health checker."""

    HEALTHY = 0
    DRAIN = 1
    UNHEALTHY = 2


def int_average(values: Sequence[int]) -> float:
    """Average of the values, or 0 when there are none."""
    if not values:
        return 0.0
    return sum(values) / len(values)


class IntWindow:
    """Keeps the most recent ``max_samples`` integer samples."""

    def __init__(self, max_samples: int) -> None:
        if max_samples < 0:
            raise ValueError("max_samples must not be negative")
        self._samples: deque[int] = deque(maxlen=max_samples)
        self._lock = threading.Lock()

    @property
    def max_samples(self) -> int:
        return self._samples.maxlen or 0

    def add(self, sample: int) -> None:
        """Add a sample, dropping the oldest one once the window is full."""
        with self._lock:
            self._samples.append(sample)

    def stats(self) -> Metrics:
        with self._lock:
            return {"avg": int_average(list(self._samples))}