"""Cache module for upstream response caching with TTL classes."""

from .keys import build_cache_key, classify, ttl_for
from .models import CacheEntry
from .response_cache import ResponseCache
from .statistics import CacheStatistics

__all__ = [
    "ResponseCache",
    "CacheEntry",
    "CacheStatistics",
    "build_cache_key",
    "classify",
    "ttl_for",
]
