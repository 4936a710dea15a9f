"""
Interface definitions for cachebench.

The harness drives any store implementing CacheUnderTest. It only needs a
put/get pair, a per-tier statistics query and an idempotent close().

Example Usage:
    from cachebench.interfaces import CacheUnderTest, TierStatistics

    class MemcachedAdapter(CacheUnderTest):
        def put(self, key, value):
            self.client.set(str(key), value)
        # ... implement get, get_statistics and close
"""

from cachebench.interfaces.cache import (
    CacheUnderTest,
    TierStatistics,
)

__all__ = [
    'CacheUnderTest',
    'TierStatistics',
]
