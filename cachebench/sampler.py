"""
Background sampling of cache-level statistics.

The StatisticsSampler polls ``cache.get_statistics(tier)`` on a fixed interval
from its own thread. It runs across phase boundaries and only stops when its
owner calls stop(). Sampling never synchronizes with the workers, so a snapshot
is a possibly stale but cumulative read of the tier's counters.
"""

import datetime
import threading
import time

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from cachebench.cb_logging import setup_logging
from cachebench.errors import StatisticsUnavailable, TierNotFound


@dataclass(frozen=True)
class StatisticsSnapshot:
    """Point-in-time read of one cache tier."""
    timestamp: str
    elapsed_seconds: float
    tier: str
    hits: int
    counters: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'elapsed_seconds': self.elapsed_seconds,
            'tier': self.tier,
            'hits': self.hits,
            'counters': dict(self.counters),
        }


class StatisticsSampler:
    """
    Periodic poller of a cache tier's statistics.

    Args:
        cache: CacheUnderTest to poll.
        tier_name: Tier passed to ``get_statistics``.
        interval_seconds: Time between two sampling cycles.
        logger: Optional logger; snapshots are logged at STATUS level.
        initial_delay_seconds: Delay before the first cycle. Defaults to
            one interval.
        on_snapshot: Called from the sampling thread with every new snapshot.

    Usage:
        with StatisticsSampler(cache, "OnHeap", 1.0) as sampler:
            ...
        sampler.snapshots
    """

    def __init__(self, cache, tier_name: str, interval_seconds: float, logger=None,
                 initial_delay_seconds: Optional[float] = None,
                 on_snapshot: Optional[Callable[[StatisticsSnapshot], None]] = None):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self.cache = cache
        self.tier_name = tier_name
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = interval_seconds if initial_delay_seconds is None else initial_delay_seconds
        self.logger = logger or setup_logging("cachebench.sampler")
        self.on_snapshot = on_snapshot

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._snapshots: List[StatisticsSnapshot] = []
        self._skipped_cycles = 0
        self._started_at: Optional[float] = None

    def start(self) -> None:
        """Start the sampling thread. A sampler can only be started once."""
        if self._thread is not None:
            raise RuntimeError("StatisticsSampler has already been started")
        self._started_at = time.perf_counter()
        self._thread = threading.Thread(target=self._run, name="statistics-sampler", daemon=True)
        self._thread.start()
        self.logger.verbose(f'Statistics sampler started for tier "{self.tier_name}" '
                            f'every {self.interval_seconds:g}s')

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the sampling thread and wait for it to exit. Safe to call repeatedly."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout)
            if thread.is_alive():
                self.logger.warning(f"Statistics sampler did not stop within {timeout}s")
                return
            self.logger.verbose(f"Statistics sampler stopped after {len(self.snapshots)} snapshot(s), "
                                f"{self.skipped_cycles} skipped cycle(s)")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def snapshots(self) -> List[StatisticsSnapshot]:
        with self._lock:
            return list(self._snapshots)

    @property
    def skipped_cycles(self) -> int:
        with self._lock:
            return self._skipped_cycles

    def sample_once(self) -> Optional[StatisticsSnapshot]:
        """
        Run one sampling cycle.

        Returns:
            The new snapshot, or None when the cycle was skipped.
        """
        try:
            stats = self.cache.get_statistics(self.tier_name)
            hits = getattr(stats, 'hits', None)
            if hits is None:
                raise StatisticsUnavailable(f'Tier "{self.tier_name}" does not report hits',
                                            tier=self.tier_name, metric="hits")
        except TierNotFound as e:
            available = f" (available: {', '.join(e.available)})" if e.available else ""
            return self._skip(f'Statistics tier "{self.tier_name}" not found{available}; skipping sample')
        except StatisticsUnavailable as e:
            return self._skip(f"Statistics unavailable; skipping sample: {e.message}")
        except Exception as e:
            return self._skip(f"Reading statistics failed; skipping sample: {e}")

        started = self._started_at if self._started_at is not None else time.perf_counter()
        counters = stats.as_dict() if hasattr(stats, 'as_dict') else {}
        counters.pop('tier', None)
        snapshot = StatisticsSnapshot(
            timestamp=datetime.datetime.now().isoformat(),
            elapsed_seconds=time.perf_counter() - started,
            tier=self.tier_name,
            hits=int(hits),
            counters=counters,
        )
        with self._lock:
            self._snapshots.append(snapshot)
        self.logger.status(f"{self.tier_name} hits: {snapshot.hits}")
        if self.on_snapshot is not None:
            self.on_snapshot(snapshot)
        return snapshot

    def _skip(self, message: str) -> None:
        with self._lock:
            self._skipped_cycles += 1
        self.logger.warning(message)
        return None

    def _run(self):
        if self._stop_event.wait(self.initial_delay_seconds):
            return
        next_run = time.monotonic()
        while not self._stop_event.is_set():
            self.sample_once()
            # Fixed rate: the next cycle is scheduled from the previous deadline
            next_run += self.interval_seconds
            if self._stop_event.wait(max(0.0, next_run - time.monotonic())):
                break

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
