"""
Gateway metrics: per-operation request counters.

The sink maps counter names to counters. A route marks
``<controller><suffix.total>`` and ``<namespace+method><suffix.total>`` when those
names exist in the sink; unknown names are skipped.
"""

import threading
from collections.abc import Iterator, Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class Counter(Protocol):
    def mark(self, n: int = 1) -> None: ...


class MeterCounter:
    """In-process counter. mark() is a single locked increment."""

    __slots__ = ("_lock", "_value", "name")

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._value = 0
        self._lock = threading.Lock()

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._value += n

    @property
    def count(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"MeterCounter({self.name!r}, count={self.count})"


class MetricsSink(Mapping[str, Counter]):
    """
    Read-only mapping of counter name -> Counter, plus the name suffixes.

    suffix: {"total": "<suffix>"}; the total suffix is appended to the
    controller and namespace+method names to form counter keys.
    """

    def __init__(
        self,
        counters: Mapping[str, Counter] | None = None,
        suffix: Mapping[str, str] | None = None,
    ) -> None:
        self._counters = dict(counters or {})
        self.suffix = dict(suffix or {"total": "_total"})

    @classmethod
    def for_operations(
        cls, names: list[str], suffix: Mapping[str, str] | None = None
    ) -> "MetricsSink":
        """Build a sink with one MeterCounter per name."""
        sink = cls(suffix=suffix)
        total = sink.suffix.get("total", "")
        sink._counters = {f"{n}{total}": MeterCounter(f"{n}{total}") for n in names}
        return sink

    def __getitem__(self, key: str) -> Counter:
        return self._counters[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._counters)

    def __len__(self) -> int:
        return len(self._counters)

    def total_key(self, name: str) -> str:
        return f"{name}{self.suffix.get('total', '')}"

    def mark_total(self, *names: str) -> list[str]:
        """Mark the total counter of each distinct name present in the sink. Returns marked keys."""
        marked: list[str] = []
        for name in dict.fromkeys(names):
            key = self.total_key(name)
            counter = self._counters.get(key)
            if counter is None:
                continue
            counter.mark()
            marked.append(key)
        return marked
