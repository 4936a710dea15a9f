"""
Cache interface definitions for cachebench.

This module defines the contract of the store under test. The harness treats
the store as opaque: thread safety, eviction and serialization are the
store's business. Worker threads share one CacheUnderTest instance.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Dict, Hashable, Optional


@dataclass(frozen=True)
class TierStatistics:
    """Point-in-time counters of one storage tier.

    Attributes:
        tier: Tier name, e.g. "OnHeap".
        hits: Cumulative number of reads served by this tier.
        misses: Cumulative number of reads that found nothing.
        puts: Cumulative number of writes.
        evictions: Cumulative number of entries evicted to stay within capacity.
        mappings: Number of entries currently held.
    """
    tier: str
    hits: int
    misses: int = 0
    puts: int = 0
    evictions: int = 0
    mappings: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CacheUnderTest(ABC):
    """Interface for a key/value store driven by the harness.

    The key and value types are fixed for a run: keys are ints in [0, N) and
    values are fixed-size bytes payloads.

    Example:
        class DictCache(CacheUnderTest):
            def __init__(self):
                self.data = {}
                self.hits = 0

            def put(self, key, value):
                self.data[key] = value

            def get(self, key):
                value = self.data.get(key)
                if value is not None:
                    self.hits += 1
                return value

            def get_statistics(self, tier_name):
                if tier_name != "OnHeap":
                    raise TierNotFound(tier_name)
                return TierStatistics(tier=tier_name, hits=self.hits)

            def close(self):
                self.data.clear()
    """

    @abstractmethod
    def put(self, key: Hashable, value: Any) -> None:
        """Store value under key.

        Raises:
            Exception: Any failure; the harness records it as PUT_ERROR.
        """
        pass

    @abstractmethod
    def get(self, key: Hashable) -> Optional[Any]:
        """Return the value stored under key, or None on a miss.

        Raises:
            Exception: Any failure; the harness records it as GET_ERROR.
        """
        pass

    @abstractmethod
    def get_statistics(self, tier_name: str) -> TierStatistics:
        """Return the counters of a named tier.

        Raises:
            TierNotFound: If the cache has no tier with this name.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the cache. Calling close() more than once is a no-op."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
