"""
Concurrency control for workload phases.

A phase runs ``degree`` workers. Count-bound phases split their iteration
count into contiguous, disjoint index ranges, one per worker, so the key
domain is covered exactly once. Time-bound phases give every worker an
independent loop that ends when the ExpiryFlag of that execution is set.
The executor creates a fresh flag every time it runs a phase. Workers check
the flag once per operation, so a phase overshoots its duration by at most
one operation.
"""

import threading

from dataclasses import dataclass
from typing import List, Optional

from cachebench.errors import PhaseSetupError


@dataclass(frozen=True)
class CountBound:
    """Run exactly ``count`` operations across all workers."""
    count: int

    def describe(self) -> str:
        return f"{self.count} operations"


@dataclass(frozen=True)
class TimeBound:
    """Run operations until ``duration_seconds`` have elapsed."""
    duration_seconds: float

    def describe(self) -> str:
        return f"{self.duration_seconds}s"


class ExpiryFlag:
    """
    Shared "stop now" flag of a time-bound phase.

    arm() starts a timer that sets the flag after a duration; expire() sets it
    immediately, e.g. when a run is interrupted.
    """

    def __init__(self):
        self._event = threading.Event()
        self._timer: Optional[threading.Timer] = None

    def arm(self, duration_seconds: float) -> None:
        self.disarm()
        self._timer = threading.Timer(duration_seconds, self._event.set)
        self._timer.daemon = True
        self._timer.name = "phase-expiry"
        self._timer.start()

    def disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def expire(self) -> None:
        self._event.set()

    def is_expired(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


@dataclass
class WorkerPlan:
    """What one worker of a phase has to do.

    Attributes:
        worker_index: Position of the worker in the phase, from 0.
        index_range: Indexes assigned to the worker (count-bound phases, and
            the cycle of a sequential time-bound worker).
        time_bound: The worker loops until the phase's ExpiryFlag is set.
    """
    worker_index: int
    index_range: range
    time_bound: bool = False


class ConcurrencyController:
    """Decides how the work of a phase is divided among its workers."""

    @staticmethod
    def validate_degree(degree, phase_name: str = None) -> int:
        if not isinstance(degree, int) or isinstance(degree, bool) or degree < 1:
            raise PhaseSetupError(f"Invalid concurrency degree: {degree!r}", phase=phase_name,
                                  reason="concurrency must be an integer >= 1")
        return degree

    @staticmethod
    def partition(total: int, degree: int) -> List[range]:
        """
        Split [0, total) into ``degree`` contiguous ranges.

        Range sizes differ by at most one; the first ``total % degree`` ranges
        hold the extra element. Ranges may be empty when total < degree.

        Example:
            >>> ConcurrencyController.partition(10, 3)
            [range(0, 4), range(4, 7), range(7, 10)]
        """
        base, extra = divmod(total, degree)
        ranges = []
        start = 0
        for i in range(degree):
            size = base + (1 if i < extra else 0)
            ranges.append(range(start, start + size))
            start += size
        return ranges

    def plan(self, iterations, degree: int, domain_size: int, phase_name: str = None) -> List[WorkerPlan]:
        """
        Build one WorkerPlan per worker.

        Args:
            iterations: CountBound or TimeBound policy of the phase.
            degree: Number of workers.
            domain_size: Size of the key domain, used to give time-bound
                workers a slice to cycle through for sequential selection.
        """
        degree = self.validate_degree(degree, phase_name)
        if isinstance(iterations, CountBound):
            return [WorkerPlan(worker_index=i, index_range=r)
                    for i, r in enumerate(self.partition(iterations.count, degree))]

        slices = self.partition(domain_size, degree)
        return [WorkerPlan(worker_index=i, index_range=slices[i] if len(slices[i]) else range(domain_size),
                           time_bound=True)
                for i in range(degree)]
