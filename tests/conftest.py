"""
Shared pytest fixtures for cachebench tests.

These fixtures provide loggers, small configurations and populated caches
that can be used across all test modules.
"""

from unittest.mock import MagicMock

import pytest

from cachebench.config import HarnessConfig
from cachebench.generators import KeyGenerator, KeySampler, ValueGenerator
from cachebench.stores import OnHeapCache

from tests.fixtures import MockLogger


# =============================================================================
# Logger Fixtures
# =============================================================================

@pytest.fixture
def mock_logger():
    """
    Create a mock logger that captures all log calls.

    Usage:
        def test_something(mock_logger):
            some_function(logger=mock_logger)
            mock_logger.status.assert_called()
    """
    logger = MagicMock()
    for level in ['debug', 'info', 'warning', 'error', 'critical',
                  'status', 'verbose', 'verboser', 'ridiculous', 'result']:
        setattr(logger, level, MagicMock())
    return logger


@pytest.fixture
def capturing_logger():
    """
    A MockLogger that records messages per level.

    Usage:
        def test_something(capturing_logger):
            some_function(logger=capturing_logger)
            capturing_logger.assert_logged('warning', 'skipping')
    """
    return MockLogger()


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def small_config(tmp_path) -> HarnessConfig:
    """10 keys of 16 bytes, a short test phase and a fast sampler."""
    return HarnessConfig(
        elements_per_thread=10,
        payload_size_bytes=16,
        load_concurrency=1,
        test_concurrency=2,
        test_duration_seconds=0.3,
        sampling_interval_millis=50,
        seed=42,
    )


# =============================================================================
# Generator and Cache Fixtures
# =============================================================================

@pytest.fixture
def generators():
    """Key generator, key sampler and value generator over a domain of 100 keys."""
    keys = KeyGenerator(100)
    sampler = KeySampler(100, seed=7)
    values = ValueGenerator(32, seed=7)
    return keys, sampler, values


@pytest.fixture
def onheap_cache():
    cache = OnHeapCache(capacity=1000)
    yield cache
    cache.close()


@pytest.fixture
def loaded_cache():
    """OnHeapCache holding keys 0..9 with 16-byte values."""
    cache = OnHeapCache(capacity=10)
    values = ValueGenerator(16, seed=42)
    for key in range(10):
        cache.put(key, values.value_for(key))
    yield cache
    cache.close()
