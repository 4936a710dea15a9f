"""
In-process reference cache with a single "OnHeap" tier.

Entries live in an OrderedDict bounded by a capacity in entries; the least
recently used entry is evicted when a put would exceed it. All state is
guarded by one lock, so the cache is safe to share between worker threads.
"""

import copy
import threading

from collections import OrderedDict
from typing import Any, Hashable, Optional

from cachebench.config import DEFAULT_CACHE_NAME, DEFAULT_TIER_NAME, ValueCopyPolicy
from cachebench.errors import CacheOperationError, ConfigurationError, ErrorCode, TierNotFound
from cachebench.interfaces.cache import CacheUnderTest, TierStatistics


class OnHeapCache(CacheUnderTest):
    """Thread-safe LRU cache keeping its values in process memory.

    Args:
        name: Cache name, used in log messages.
        capacity: Maximum number of entries.
        copy_policy: Whether values are copied when stored and/or when read.
            Copies protect the cache against callers mutating a bytearray
            after put() or mutating a value returned by get().
    """

    def __init__(self, name: str = DEFAULT_CACHE_NAME, capacity: int = 10000,
                 copy_policy: ValueCopyPolicy = ValueCopyPolicy.NONE,
                 tier_name: str = DEFAULT_TIER_NAME):
        if not isinstance(capacity, int) or capacity < 1:
            raise ConfigurationError("Cache capacity must be a positive integer",
                                     parameter="cache_capacity", expected=">= 1", actual=capacity)
        self.name = name
        self.capacity = capacity
        self.copy_policy = ValueCopyPolicy(copy_policy)
        self.tier_name = tier_name

        self._entries: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()
        self._closed = False
        self.stats = {
            'hits': 0,
            'misses': 0,
            'puts': 0,
            'evictions': 0,
        }

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, key: Hashable, value: Any) -> None:
        if self.copy_policy.copies_on_store:
            value = copy.copy(value)
        with self._lock:
            self._check_open('put', key)
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = value
            self.stats['puts'] += 1
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)
                self.stats['evictions'] += 1

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            self._check_open('get', key)
            value = self._entries.get(key)
            if value is None:
                self.stats['misses'] += 1
                return None
            self._entries.move_to_end(key)
            self.stats['hits'] += 1
        if self.copy_policy.copies_on_read:
            value = copy.copy(value)
        return value

    def get_statistics(self, tier_name: str) -> TierStatistics:
        if tier_name != self.tier_name:
            raise TierNotFound(tier_name, available=[self.tier_name])
        with self._lock:
            return TierStatistics(
                tier=self.tier_name,
                hits=self.stats['hits'],
                misses=self.stats['misses'],
                puts=self.stats['puts'],
                evictions=self.stats['evictions'],
                mappings=len(self._entries),
            )

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        # Membership checks do not count as hits or misses
        with self._lock:
            return key in self._entries

    def keys(self):
        with self._lock:
            return list(self._entries.keys())

    def _check_open(self, operation: str, key: Hashable):
        if self._closed:
            raise CacheOperationError(f"Cache '{self.name}' is closed", operation=operation, key=key,
                                      code=ErrorCode.CACHE_CLOSED)


def create_cache(config) -> OnHeapCache:
    """Build the reference cache described by a HarnessConfig.

    The cache always exposes its default tier; config.tier_name only selects
    which tier the sampler asks for.
    """
    return OnHeapCache(
        name=config.cache_name,
        capacity=config.resolved_capacity,
        copy_policy=config.value_copy_policy,
    )
