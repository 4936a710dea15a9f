"""Reference stores the harness can drive without an external cache."""

from cachebench.stores.onheap import OnHeapCache, create_cache

__all__ = [
    'OnHeapCache',
    'create_cache',
]
