"""Thread-safe event counters."""

from __future__ import annotations

import threading
from collections.abc import Iterable

UNDEFINED = "undefined"


class Counter:
    """Counts how many times an event occurs."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def incr(self) -> int:
        """Increment by one and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class CounterGroup:
    """A fixed group of named counters with a catch-all ``undefined`` counter."""

    def __init__(self, *names: str) -> None:
        self._group: dict[str, Counter] = {name: Counter() for name in names}
        self._group[UNDEFINED] = Counter()

    @classmethod
    def of(cls, names: Iterable[str]) -> "CounterGroup":
        return cls(*names)

    def get(self, name: str) -> Counter:
        """Return the named counter, or the catch-all one if it is unknown."""
        return self._group.get(name, self._group[UNDEFINED])

    def incr(self, name: str) -> int:
        """Increment the named counter and return its new value."""
        return self.get(name).incr()

    def stats(self) -> dict[str, int]:
        return {name: counter.value for name, counter in self._group.items()}