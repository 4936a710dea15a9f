"""
cachebench - load-testing harness for key/value caches.

Populates a cache deterministically, exercises it with a randomized read
workload and reports throughput, hit/miss counts and latency percentiles.

Usage:
    from cachebench import HarnessConfig, RunOrchestrator

    result = RunOrchestrator(HarnessConfig(elements_per_thread=1000, test_duration_seconds=5)).run()
    print(result.status, result.report.as_dict())
"""

VERSION = "0.3.0"

from cachebench.config import HarnessConfig, OutcomeCategory, RunState, load_config
from cachebench.interfaces import CacheUnderTest, TierStatistics
from cachebench.orchestrator import RunOrchestrator, RunResult

__all__ = [
    'VERSION',
    'CacheUnderTest',
    'HarnessConfig',
    'OutcomeCategory',
    'RunOrchestrator',
    'RunResult',
    'RunState',
    'TierStatistics',
    'load_config',
]
