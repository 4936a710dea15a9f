"""
Test fixtures package for cachebench tests.

This package provides reusable mock loggers and cache doubles for testing
the phase executor, sampler and orchestrator without a real cache.
"""

from tests.fixtures.mock_logger import MockLogger, create_mock_logger
from tests.fixtures.mock_cache import (
    FlakyCache,
    HitlessCache,
    RecordingCache,
    StatlessCache,
)

__all__ = [
    'MockLogger',
    'create_mock_logger',
    'FlakyCache',
    'HitlessCache',
    'RecordingCache',
    'StatlessCache',
]
