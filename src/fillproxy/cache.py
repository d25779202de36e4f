"""Hour-bucketed LRU cache of fills.

Each entry maps an hour boundary to every fill in that hour, sorted by
timestamp. Whole hours are cached because any query of at most one hour
touches at most two buckets, and nearby queries tend to hit the same
ones. The default capacity of 168 entries holds one week of data.

Recency is tracked with an OrderedDict: the first key is the least
recently used, the last key the most recently used. Lookups, inserts and
evictions are all O(1).
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from pydantic import BaseModel, Field

from fillproxy.errors import MalformedRecord
from fillproxy.ingestion.base import FillSource
from fillproxy.ingestion.models import HOUR_SECONDS, Fill

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 168


class CacheStats(BaseModel):
    """Point-in-time snapshot of cache usage."""

    capacity: int
    hours_cached: int
    total_fills: int
    max_fills_per_hour: int
    hits: int = Field(description="Lookups served from the cache")
    misses: int = Field(description="Lookups that called the fill source")
    evictions: int

    model_config = {"frozen": True}

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def summary(self) -> str:
        """Multi-line report for the end of a run."""
        return (
            "Cache statistics:\n"
            f"    Hours cached: {self.hours_cached}/{self.capacity}\n"
            f"    Total fills stored: {self.total_fills}\n"
            f"    Maximum fills in a single hour: {self.max_fills_per_hour}\n"
            f"    Cache hits: {self.hits}\n"
            f"    Source calls: {self.misses}\n"
            f"    Evictions: {self.evictions}\n"
            f"    Hit rate: {self.hit_rate:.2%}"
        )


class HourCache:
    """Bounded LRU map from hour key to that hour's fills.

    Misses are filled from the injected FillSource. A failed fetch stores
    nothing, so the next lookup for that hour tries the source again.
    """

    def __init__(self, source: FillSource, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Cache capacity must be >= 1, got {capacity}")
        self._source = source
        self._capacity = capacity
        self._entries: OrderedDict[int, tuple[Fill, ...]] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def source(self) -> FillSource:
        return self._source

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> list[int]:
        """Cached hour keys, least recently used first."""
        return list(self._entries)

    def get_or_fetch(self, key: int) -> tuple[Fill, ...]:
        """Return the fills for an hour, fetching and caching on a miss.

        Args:
            key: Hour boundary (a multiple of 3600).

        Raises:
            ValueError: If key is not an hour boundary.
            SourceUnavailable: If the source fails; nothing is cached.
            MalformedRecord: If the source returns a fill outside the hour.
        """
        if key % HOUR_SECONDS:
            raise ValueError(f"Not an hour boundary: {key}")

        fills = self._entries.get(key)
        if fills is not None:
            self._entries.move_to_end(key)
            self._hits += 1
            logger.debug("Cache hit for hour %d", key)
            return fills

        logger.debug("Cache miss for hour %d", key)
        self._misses += 1
        fills = self._load(key)

        if len(self._entries) >= self._capacity:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Evicted hour %d (capacity %d)", evicted, self._capacity)
        self._entries[key] = fills
        return fills

    def _load(self, key: int) -> tuple[Fill, ...]:
        """Fetch an hour from the source and check it belongs to that hour."""
        fetched = self._source.fetch_hour(key)
        for fill in fetched:
            if fill.hour != key:
                raise MalformedRecord(
                    f"Source returned a fill at {fill.timestamp} "
                    f"(sequence {fill.sequence_number}) outside the requested hour",
                    hour_key=key,
                    field="time",
                )
        return tuple(sorted(fetched, key=lambda f: f.timestamp))

    def stats(self) -> CacheStats:
        sizes = [len(fills) for fills in self._entries.values()]
        return CacheStats(
            capacity=self._capacity,
            hours_cached=len(self._entries),
            total_fills=sum(sizes),
            max_fills_per_hour=max(sizes, default=0),
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )


class SynchronizedHourCache(HourCache):
    """HourCache safe to share between threads.

    Every get_or_fetch runs under a single lock, so at most one thread
    mutates the entries (or calls the source) at a time.
    """

    def __init__(self, source: FillSource, capacity: int = DEFAULT_CAPACITY) -> None:
        super().__init__(source, capacity)
        self._lock = threading.Lock()

    def get_or_fetch(self, key: int) -> tuple[Fill, ...]:
        with self._lock:
            return super().get_or_fetch(key)

    def stats(self) -> CacheStats:
        with self._lock:
            return super().stats()
