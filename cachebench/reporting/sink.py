"""
Outcome accumulation and report aggregation.

Workers never share counters: each one owns an OutcomeRecorder that appends
operation latencies into compact per-category arrays. The Phase Executor
merges the recorders once, after every worker has joined, and hands the
merged PhaseResult to the ReportSink.

A category filter applies at report-generation time only. Filtered-out
categories disappear from the emitted report but still count toward the
phase totals.
"""

import datetime

from array import array
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

import numpy as np

from cachebench.config import LATENCY_PERCENTILES, OperationKind, OutcomeCategory


def percentile_label(pct) -> str:
    return f"p{pct:g}"


class CategoryStats:
    """Latencies (seconds) of every operation that ended in one category."""

    def __init__(self, category: OutcomeCategory, latencies: Optional[array] = None):
        self.category = category
        self.latencies = latencies if latencies is not None else array('d')

    @property
    def count(self) -> int:
        return len(self.latencies)

    def add(self, latency_seconds: float) -> None:
        self.latencies.append(latency_seconds)

    def merge(self, other: "CategoryStats") -> None:
        self.latencies.extend(other.latencies)

    def summary(self, elapsed_seconds: float) -> Dict[str, Any]:
        """
        Summarize the category.

        Returns:
            Dictionary with ``count``, ``throughput_ops_per_sec`` and a
            ``latency_ms`` table (mean, min, max and LATENCY_PERCENTILES).
            Latency values are None when the category is empty.
        """
        throughput = self.count / elapsed_seconds if elapsed_seconds > 0 else 0.0
        latency_ms: Dict[str, Optional[float]] = {'mean': None, 'min': None, 'max': None}
        latency_ms.update({percentile_label(p): None for p in LATENCY_PERCENTILES})

        if self.count:
            lat = np.frombuffer(self.latencies, dtype=np.float64) * 1000
            latency_ms['mean'] = float(np.mean(lat))
            latency_ms['min'] = float(np.min(lat))
            latency_ms['max'] = float(np.max(lat))
            for pct, value in zip(LATENCY_PERCENTILES, np.percentile(lat, LATENCY_PERCENTILES)):
                latency_ms[percentile_label(pct)] = float(value)

        return {
            'count': self.count,
            'throughput_ops_per_sec': throughput,
            'latency_ms': latency_ms,
        }


class OutcomeRecorder:
    """Per-worker accumulator of operation outcomes."""

    def __init__(self):
        self._latencies: Dict[OutcomeCategory, array] = {}

    def record(self, category: OutcomeCategory, latency_seconds: float) -> None:
        bucket = self._latencies.get(category)
        if bucket is None:
            bucket = self._latencies[category] = array('d')
        bucket.append(latency_seconds)

    def count(self, category: OutcomeCategory) -> int:
        bucket = self._latencies.get(category)
        return len(bucket) if bucket is not None else 0

    @property
    def total(self) -> int:
        return sum(len(b) for b in self._latencies.values())

    def categories(self) -> Dict[OutcomeCategory, array]:
        return dict(self._latencies)

    @staticmethod
    def merge(recorders: Iterable["OutcomeRecorder"],
              expected: Iterable[OutcomeCategory] = ()) -> Dict[OutcomeCategory, CategoryStats]:
        """
        Merge worker recorders into one CategoryStats per category.

        Every category in ``expected`` is present in the result, with a count
        of 0 when no worker recorded it.
        """
        merged: Dict[OutcomeCategory, CategoryStats] = {c: CategoryStats(c) for c in expected}
        for recorder in recorders:
            for category, latencies in recorder._latencies.items():
                stats = merged.setdefault(category, CategoryStats(category))
                stats.latencies.extend(latencies)
        return merged


@dataclass
class PhaseResult:
    """Merged outcomes of one completed phase."""
    phase_name: str
    operation: OperationKind
    concurrency: int
    iterations: str
    elapsed_seconds: float
    started_at: str
    finished_at: str
    categories: Dict[OutcomeCategory, CategoryStats] = field(default_factory=dict)
    stopped_early: bool = False

    @property
    def total_operations(self) -> int:
        return sum(s.count for s in self.categories.values())

    def count(self, category: OutcomeCategory) -> int:
        stats = self.categories.get(category)
        return stats.count if stats is not None else 0

    def counts(self) -> Dict[OutcomeCategory, int]:
        return {c: s.count for c, s in self.categories.items()}

    @property
    def hit_ratio(self) -> Optional[float]:
        reads = self.count(OutcomeCategory.GET_HIT) + self.count(OutcomeCategory.GET_MISS)
        if not reads:
            return None
        return self.count(OutcomeCategory.GET_HIT) / reads

    def summary(self, categories: Optional[Set[OutcomeCategory]] = None) -> Dict[str, Any]:
        elapsed = self.elapsed_seconds
        total = self.total_operations
        return {
            'name': self.phase_name,
            'operation': self.operation.name,
            'concurrency': self.concurrency,
            'iterations': self.iterations,
            'started_at': self.started_at,
            'finished_at': self.finished_at,
            'elapsed_seconds': elapsed,
            'stopped_early': self.stopped_early,
            'total_operations': total,
            'throughput_ops_per_sec': total / elapsed if elapsed > 0 else 0.0,
            'hit_ratio': self.hit_ratio,
            'categories': {
                category.name: stats.summary(elapsed)
                for category, stats in sorted(self.categories.items(), key=lambda kv: kv[0].name)
                if categories is None or category in categories
            },
        }


@dataclass
class Report:
    """Structured report artifact built by the ReportSink."""
    phases: List[Dict[str, Any]]
    reported_categories: Optional[List[str]] = None
    snapshots: List[Dict[str, Any]] = field(default_factory=list)
    generated_at: str = field(default_factory=lambda: datetime.datetime.now().isoformat())
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_operations(self) -> int:
        return sum(p['total_operations'] for p in self.phases)

    def phase(self, name: str) -> Optional[Dict[str, Any]]:
        for phase in self.phases:
            if phase['name'] == name:
                return phase
        return None

    def as_dict(self) -> Dict[str, Any]:
        return {
            'generated_at': self.generated_at,
            'reported_categories': self.reported_categories if self.reported_categories is not None else 'all',
            'total_operations': self.total_operations,
            'metadata': self.metadata,
            'phases': self.phases,
            'statistics_snapshots': self.snapshots,
        }


class ReportSink:
    """Collects PhaseResults and builds filtered Reports from them."""

    def __init__(self, logger=None):
        self.logger = logger
        self._phases: Dict[str, PhaseResult] = {}

    def add_phase(self, result: PhaseResult) -> None:
        self._phases[result.phase_name] = result
        if self.logger:
            self.logger.verbose(f'Recorded {result.total_operations} operations for "{result.phase_name}" '
                                f'in {result.elapsed_seconds:.3f}s')

    @property
    def phase_results(self) -> List[PhaseResult]:
        return list(self._phases.values())

    def get_phase(self, name: str) -> Optional[PhaseResult]:
        return self._phases.get(name)

    def total_operations(self, phase: Optional[str] = None) -> int:
        if phase is not None:
            result = self._phases.get(phase)
            return result.total_operations if result else 0
        return sum(r.total_operations for r in self._phases.values())

    def counts(self, phase: str) -> Dict[OutcomeCategory, int]:
        result = self._phases.get(phase)
        return result.counts() if result else {}

    def build_report(self, categories: Optional[Iterable[OutcomeCategory]] = None,
                     phases: Optional[Iterable[str]] = None,
                     snapshots: Optional[Iterable[Any]] = None,
                     metadata: Optional[Dict[str, Any]] = None) -> Report:
        """
        Aggregate recorded phases into a Report.

        Args:
            categories: Outcome categories to show. None shows all of them.
                Hidden categories still contribute to ``total_operations``.
            phases: Names of the phases to include, in recording order. None
                includes every recorded phase.
            snapshots: StatisticsSnapshots (or dicts) to embed.
            metadata: Free-form run information (configuration, status).
        """
        category_filter = set(categories) if categories is not None else None
        wanted = set(phases) if phases is not None else None

        phase_summaries = [
            result.summary(category_filter)
            for name, result in self._phases.items()
            if wanted is None or name in wanted
        ]
        snapshot_dicts = [s.as_dict() if hasattr(s, 'as_dict') else dict(s) for s in (snapshots or [])]

        return Report(
            phases=phase_summaries,
            reported_categories=sorted(c.name for c in category_filter) if category_filter is not None else None,
            snapshots=snapshot_dicts,
            metadata=dict(metadata or {}),
        )
