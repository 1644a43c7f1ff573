"""Data models for the cache module."""

from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """A cached upstream response body and the instant it was stored."""

    data: Any
    timestamp: float

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, ttl_seconds: float, now: float) -> bool:
        """A hit requires the entry to be strictly younger than the TTL."""
        return self.age(now) < ttl_seconds
