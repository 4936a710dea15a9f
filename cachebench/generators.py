"""
Key and value generators.

All generators are deterministic functions of an integer index in the key
domain [0, N). Keys are the indexes themselves, which gives the load phase a
monotonic, gap-free population order. Random key selection for the test
phase draws from a statistical distribution and clamps every draw into the
domain, so no out-of-domain key is ever produced.
"""

import math
import threading

from typing import Optional

import numpy as np

from cachebench.config import Distribution
from cachebench.errors import ConfigurationError, GeneratorExhaustion

INDEX_PREFIX_BYTES = 8


class KeyGenerator:
    """Maps an index in [0, domain_size) to a key."""

    def __init__(self, domain_size: int):
        if not isinstance(domain_size, int) or domain_size < 1:
            raise ConfigurationError("Key domain size must be a positive integer",
                                     parameter="domain_size", expected=">= 1", actual=domain_size)
        self.domain_size = domain_size

    def key_at(self, index: int) -> int:
        """
        Return the key for index.

        Raises:
            GeneratorExhaustion: If index is outside [0, domain_size).
        """
        if index < 0 or index >= self.domain_size:
            raise GeneratorExhaustion(index, self.domain_size)
        return int(index)

    def __len__(self):
        return self.domain_size


class KeySampler:
    """
    Draws keys from [0, domain_size) under a distribution.

    With Distribution.GAUSSIAN keys are centered on ``mean`` with standard
    deviation ``stdev``; draws below 0 or at/above domain_size are clamped
    to the nearest bound. Distribution.UNIFORM ignores mean and stdev.

    Worker threads should draw from their own generator (see spawn_rng)
    since numpy Generators are not thread-safe. The sampler's own generator
    is only used when no rng is passed and is guarded by a lock.
    """

    def __init__(self, domain_size: int, distribution: Distribution = Distribution.GAUSSIAN,
                 mean: Optional[float] = None, stdev: Optional[float] = None,
                 seed: Optional[int] = None):
        if not isinstance(domain_size, int) or domain_size < 1:
            raise ConfigurationError("Key domain size must be a positive integer",
                                     parameter="domain_size", expected=">= 1", actual=domain_size)
        self.domain_size = domain_size
        self.distribution = Distribution(distribution)
        self.mean = domain_size // 2 if mean is None else mean
        self.stdev = max(1, domain_size // 10) if stdev is None else stdev
        if self.stdev < 0:
            raise ConfigurationError("Distribution standard deviation must not be negative",
                                     parameter="distribution_stdev", expected=">= 0", actual=self.stdev)
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self._rng_lock = threading.Lock()

    def spawn_rng(self, worker_index: int) -> np.random.Generator:
        """Return an independent generator for one worker, reproducible when seeded."""
        if self.seed is None:
            return np.random.default_rng()
        return np.random.default_rng([self.seed, worker_index])

    def clamp(self, draw: float) -> int:
        key = math.floor(draw)
        if key < 0:
            return 0
        if key >= self.domain_size:
            return self.domain_size - 1
        return key

    def sample_key(self, rng: Optional[np.random.Generator] = None) -> int:
        """Draw a single key."""
        if rng is None:
            with self._rng_lock:
                return self.sample_key(self._rng)
        if self.distribution == Distribution.UNIFORM:
            return int(rng.integers(0, self.domain_size))
        return self.clamp(rng.normal(self.mean, self.stdev))

    def sample_keys(self, count: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Draw ``count`` keys at once as an int64 array."""
        if rng is None:
            with self._rng_lock:
                return self.sample_keys(count, self._rng)
        if self.distribution == Distribution.UNIFORM:
            return rng.integers(0, self.domain_size, size=count, dtype=np.int64)
        draws = np.floor(rng.normal(self.mean, self.stdev, size=count))
        return np.clip(draws, 0, self.domain_size - 1).astype(np.int64)


class ValueGenerator:
    """
    Produces fixed-size bytes payloads.

    The first 8 bytes of a payload encode the index (little endian) and the
    remainder is a seeded random template shared by all payloads, so values
    are deterministic, distinct per key, and cheap to build.
    """

    def __init__(self, payload_size_bytes: int, seed: Optional[int] = None):
        if not isinstance(payload_size_bytes, int) or payload_size_bytes < 0:
            raise ConfigurationError("Payload size must be a non-negative integer",
                                     parameter="payload_size_bytes", expected=">= 0",
                                     actual=payload_size_bytes)
        self.payload_size_bytes = payload_size_bytes
        rng = np.random.default_rng(0 if seed is None else seed)
        self._template = rng.integers(0, 256, size=payload_size_bytes, dtype=np.uint8).tobytes()

    def value_for(self, key_or_index: int) -> bytes:
        size = self.payload_size_bytes
        prefix = (int(key_or_index) & 0xFFFFFFFFFFFFFFFF).to_bytes(INDEX_PREFIX_BYTES, 'little')
        if size <= INDEX_PREFIX_BYTES:
            return prefix[:size]
        return prefix + self._template[INDEX_PREFIX_BYTES:]


def build_generators(config):
    """Create the key generator, key sampler and value generator of a run."""
    domain = config.key_domain_size
    keys = KeyGenerator(domain)
    sampler = KeySampler(domain, distribution=config.distribution, mean=config.resolved_mean,
                         stdev=config.resolved_stdev, seed=config.seed)
    values = ValueGenerator(config.payload_size_bytes, seed=config.seed)
    return keys, sampler, values
