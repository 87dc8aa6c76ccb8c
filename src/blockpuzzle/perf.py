"""Light-weight timing and counting helpers for solver runs."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterator, List, Optional


@dataclass
class SectionStat:
    """Aggregated timings for one labelled section."""

    count: int = 0
    total: float = 0.0
    min_time: Optional[float] = None
    max_time: float = 0.0

    def add(self, elapsed: float) -> None:
        self.count += 1
        self.total += elapsed
        if self.min_time is None or elapsed < self.min_time:
            self.min_time = elapsed
        if elapsed > self.max_time:
            self.max_time = elapsed

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0


class SearchProfiler:
    """Collect section timings and event counters.

    Sections are timed inclusively; nesting is allowed and each label simply
    accumulates its own wall time.  Counters record discrete search events
    such as expanded nodes or complete solutions.
    """

    def __init__(
        self,
        *,
        clock: Optional[Callable[[], float]] = None,
        enabled: bool = True,
    ) -> None:
        self._clock = clock or time.perf_counter
        self.enabled = enabled
        self._stats: Dict[str, SectionStat] = {}
        self._counters: Dict[str, int] = {}

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def reset(self) -> None:
        """Clear accumulated timings and counters."""

        self._stats.clear()
        self._counters.clear()

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        """Time the body of a ``with`` block under ``name``."""

        if not self.enabled:
            yield
            return
        start = self._clock()
        try:
            yield
        finally:
            elapsed = self._clock() - start
            self._stats.setdefault(name, SectionStat()).add(max(0.0, elapsed))

    def count(self, name: str, amount: int = 1) -> None:
        if self.enabled:
            self._counters[name] = self._counters.get(name, 0) + amount

    @property
    def counters(self) -> Dict[str, int]:
        return dict(self._counters)

    def snapshot(self) -> Dict[str, SectionStat]:
        """Return a copy of the accumulated section statistics."""

        return {name: replace(stat) for name, stat in self._stats.items()}

    def summary(
        self, *, sort_by: str = "total", descending: bool = True
    ) -> List[Dict[str, float | int]]:
        """Return one row per section sorted by ``sort_by``.

        Raises:
            ValueError: If ``sort_by`` is not a known column.
        """

        key_map = {
            "total": lambda item: item[1].total,
            "count": lambda item: item[1].count,
            "average": lambda item: item[1].average,
            "max": lambda item: item[1].max_time,
            "min": lambda item: item[1].min_time if item[1].min_time is not None else 0.0,
        }
        if sort_by not in key_map:
            raise ValueError(f"Unknown sort key: {sort_by}")
        items = sorted(self._stats.items(), key=key_map[sort_by], reverse=descending)
        return [
            {
                "name": name,
                "count": stat.count,
                "total": stat.total,
                "average": stat.average,
                "min": stat.min_time if stat.min_time is not None else 0.0,
                "max": stat.max_time,
            }
            for name, stat in items
        ]


__all__ = ["SectionStat", "SearchProfiler"]
