"""In-memory cache-aside store for upstream commerce API responses."""

import time
from typing import Any, Awaitable, Callable, Dict, Optional

import anyio

from .models import CacheEntry
from .statistics import CacheStatistics
from ...constants import (
    DEFAULT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
)
from ...logging import LogEvent, LogRecord, debug, info, warning

Clock = Callable[[], float]


class ResponseCache:
    """
    TTL cache keyed by upstream endpoint and request body.

    Freshness is judged per lookup against the TTL of the request's class, so
    the same store serves every resource class. Independently, a periodic
    sweep drops any entry older than ``max_age_seconds`` regardless of class,
    which bounds growth from many distinct body-keyed entries.

    Concurrent misses on the same key are coalesced behind a per-key lock so
    at most one upstream call is made per key per TTL window.
    """

    def __init__(
        self,
        max_age_seconds: float = DEFAULT_CACHE_MAX_AGE_SECONDS,
        sweep_interval_seconds: float = DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
        clock: Clock = time.time,
    ):
        self._entries: Dict[str, CacheEntry] = {}
        self._key_locks: Dict[str, anyio.Lock] = {}
        self._max_age = max_age_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._statistics = CacheStatistics()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def statistics(self) -> CacheStatistics:
        return self._statistics

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry, fresh or not, without touching statistics."""
        return self._entries.get(key)

    def lookup(self, key: str, ttl_seconds: float) -> Optional[CacheEntry]:
        """Return the entry for *key* if it is younger than *ttl_seconds*."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(ttl_seconds, self._clock()):
            self._statistics.record_hit()
            return entry
        self._statistics.record_miss()
        return None

    def get(self, key: str, ttl_seconds: float) -> Optional[Any]:
        entry = self.lookup(key, ttl_seconds)
        return entry.data if entry is not None else None

    def set(self, key: str, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock())

    def delete(self, key: str) -> bool:
        self._key_locks.pop(key, None)
        return self._entries.pop(key, None) is not None

    async def get_or_fetch(
        self,
        key: str,
        ttl_seconds: float,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Serve *key* from cache, or await *fetch* and store its result.

        Exceptions raised by *fetch* propagate and leave the cache untouched.
        """
        entry = self.lookup(key, ttl_seconds)
        if entry is not None:
            return entry.data

        lock = self._key_locks.setdefault(key, anyio.Lock())
        try:
            async with lock:
                # Another task may have refreshed the entry while we waited
                entry = self._entries.get(key)
                if entry is not None and entry.is_fresh(ttl_seconds, self._clock()):
                    return entry.data

                self._statistics.record_fetch()
                data = await fetch()
                self.set(key, data)
                debug(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message="Cached upstream response",
                        data={"key": key[:200], "ttl_seconds": ttl_seconds},
                    )
                )
                return data
        finally:
            self._release_lock(key, lock)

    def _release_lock(self, key: str, lock: anyio.Lock) -> None:
        """Forget *lock* once nothing holds or waits on it and no entry was stored."""
        if key in self._entries or lock.locked():
            return
        if lock.statistics().tasks_waiting:
            return
        if self._key_locks.get(key) is lock:
            del self._key_locks[key]

    def sweep(self) -> int:
        """Delete every entry older than the absolute ceiling. Returns the count."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.age(now) > self._max_age
        ]
        for key in expired:
            del self._entries[key]
        # Locks left behind by keys that never stored an entry
        for key, lock in list(self._key_locks.items()):
            if key not in self._entries and not lock.locked():
                del self._key_locks[key]
        if expired:
            self._statistics.record_eviction(len(expired))
        self._statistics.record_sweep()
        return len(expired)

    async def run_sweeper(self) -> None:
        """Sweep on a fixed interval until cancelled."""
        while True:
            await anyio.sleep(self._sweep_interval)
            try:
                removed = self.sweep()
            except Exception as e:
                warning(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message=f"Error in cache sweep: {str(e)}",
                    ),
                    exc=e,
                )
                continue
            if removed:
                info(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message="Swept expired cache entries",
                        data={"removed": removed, "remaining": len(self._entries)},
                    )
                )

    def get_stats(self) -> Dict[str, Any]:
        stats = self._statistics.get_stats()
        stats.update(
            {
                "size": len(self._entries),
                "max_age_seconds": self._max_age,
                "sweep_interval_seconds": self._sweep_interval,
            }
        )
        return stats

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        self._key_locks.clear()
        self._statistics.reset()
        info(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Response cache cleared",
                data={"removed": count},
            )
        )
        return count
