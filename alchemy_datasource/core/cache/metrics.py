"""
Cache metrics tracking for the cache-aside read path.

One `CacheMetrics` instance lives on each data source and counts hits,
misses, writes, invalidations and adapter errors, plus cumulative adapter
latency. Derived values (hit rate, average latencies) are computed on
demand by `get_metrics()`.

All updates happen on the event loop thread between suspension points, so
plain integer counters are sufficient.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict


@dataclass(slots=True)
class CacheMetrics:
    """Raw counters for one entity's cache traffic."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    invalidations: int = 0
    errors: int = 0
    skipped_soft_deleted: int = 0
    total_get_time_ms: float = 0.0
    total_set_time_ms: float = 0.0

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def record_set(self) -> None:
        self.sets += 1

    def record_invalidation(self) -> None:
        self.invalidations += 1

    def record_error(self) -> None:
        self.errors += 1

    def record_skipped_soft_deleted(self) -> None:
        self.skipped_soft_deleted += 1

    def record_get_time(self, elapsed_ms: float) -> None:
        self.total_get_time_ms += elapsed_ms

    def record_set_time(self, elapsed_ms: float) -> None:
        self.total_set_time_ms += elapsed_ms

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage of all lookups, 0.0 when idle."""
        lookups = self.hits + self.misses
        if lookups == 0:
            return 0.0
        return round(self.hits / lookups * 100, 2)

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get raw counters plus derived metrics.

        Returns
        -------
        Dict[str, Any]
            Counters, `hit_rate` (percent), `avg_get_time_ms` and
            `avg_set_time_ms`.
        """
        lookups = self.hits + self.misses
        return {
            **{f.name: getattr(self, f.name) for f in fields(self)},
            "hit_rate": self.hit_rate,
            "avg_get_time_ms": round(self.total_get_time_ms / lookups, 3) if lookups else 0.0,
            "avg_set_time_ms": round(self.total_set_time_ms / self.sets, 3) if self.sets else 0.0,
        }

    def reset(self) -> None:
        for f in fields(self):
            setattr(self, f.name, f.default)
