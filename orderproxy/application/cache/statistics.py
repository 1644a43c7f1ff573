"""Cache statistics tracking and reporting."""

import time
from typing import Any, Dict


class CacheStatistics:
    """Tracks response cache hits, misses, upstream fetches and evictions."""

    def __init__(self):
        self.cache_hits = 0
        self.cache_misses = 0
        self.upstream_fetches = 0
        self.evictions = 0
        self.sweeps = 0
        self.start_time = time.time()

    def record_hit(self):
        self.cache_hits += 1

    def record_miss(self):
        self.cache_misses += 1

    def record_fetch(self):
        """Record a call that actually reached the upstream."""
        self.upstream_fetches += 1

    def record_eviction(self, count: int = 1):
        self.evictions += count

    def record_sweep(self):
        self.sweeps += 1

    @property
    def hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def get_stats(self) -> Dict[str, Any]:
        """Get all statistics as a dictionary."""
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": round(self.hit_rate, 3),
            "upstream_fetches": self.upstream_fetches,
            "evictions": self.evictions,
            "sweeps": self.sweeps,
            "uptime_seconds": round(self.uptime_seconds, 1),
        }

    def reset(self):
        self.cache_hits = 0
        self.cache_misses = 0
        self.upstream_fetches = 0
        self.evictions = 0
        self.sweeps = 0
        self.start_time = time.time()
