"""
Workload phases and the Phase Executor.

A WorkloadPhase describes one bounded stretch of workload: which operation
to run, for how long (a count or a duration), with how many workers and how
keys are chosen. The PhaseExecutor validates a phase (prepare), runs its
workers as OS threads, and blocks until all of them have joined before
returning the merged PhaseResult.

Per-operation cache failures are recorded as *_ERROR outcomes and the worker
carries on. Setup failures (bad concurrency, keys outside the domain) raise
before any worker starts.
"""

import datetime
import itertools
import threading
import time

from dataclasses import dataclass
from typing import List, Optional, Union

from cachebench.cb_logging import setup_logging
from cachebench.concurrency import ConcurrencyController, CountBound, ExpiryFlag, TimeBound, WorkerPlan
from cachebench.config import KeySelection, OperationKind
from cachebench.errors import PhaseSetupError
from cachebench.operations import Operation, OperationRegistry
from cachebench.reporting.sink import OutcomeRecorder, PhaseResult

IterationPolicy = Union[CountBound, TimeBound]


@dataclass(frozen=True)
class WorkloadPhase:
    """
    One phase of a run.

    Attributes:
        name: Display name, also the key of the phase in reports.
        operation: Operation kind executed by every worker.
        iterations: CountBound(total operations) or TimeBound(seconds).
        concurrency: Number of parallel workers.
        key_selection: SEQUENTIAL walks each worker's index range in order;
            RANDOM draws keys from the run's KeySampler.
    """
    name: str
    operation: OperationKind
    iterations: IterationPolicy
    concurrency: int = 1
    key_selection: KeySelection = KeySelection.SEQUENTIAL

    def describe(self) -> str:
        return (f'{self.operation.name} x {self.iterations.describe()}, '
                f'{self.concurrency} worker(s), {self.key_selection.value} keys')


@dataclass
class PreparedPhase:
    """A validated phase together with its operation and worker plans."""
    phase: WorkloadPhase
    operation: Operation
    plans: List[WorkerPlan]


class PhaseExecutor:
    """
    Runs workload phases against a cache.

    Args:
        cache: The CacheUnderTest shared by all workers.
        keys: KeyGenerator of the run's key domain.
        sampler: KeySampler used for RANDOM key selection.
        values: ValueGenerator used to build PUT payloads.
        logger: Optional logger; a default one is created when omitted.
    """

    KEY_BATCH_SIZE = 1024

    def __init__(self, cache, keys, sampler, values, logger=None,
                 controller: Optional[ConcurrencyController] = None):
        self.cache = cache
        self.keys = keys
        self.sampler = sampler
        self.values = values
        self.logger = logger or setup_logging("cachebench.phase")
        self.controller = controller or ConcurrencyController()

        self._state_lock = threading.Lock()
        self._active_flag: Optional[ExpiryFlag] = None
        self._stop_requested = False

    def prepare(self, phase: WorkloadPhase) -> PreparedPhase:
        """
        Validate a phase and plan its workers without running anything.

        Raises:
            PhaseSetupError: Invalid concurrency, iteration policy or operation.
            GeneratorExhaustion: A sequential phase would index past the key domain.
        """
        if not isinstance(phase.operation, OperationKind):
            raise PhaseSetupError(f"Invalid operation kind: {phase.operation!r}", phase=phase.name)
        operation = OperationRegistry.create(phase.operation, phase.name)

        iterations = phase.iterations
        if isinstance(iterations, CountBound):
            if not isinstance(iterations.count, int) or iterations.count < 0:
                raise PhaseSetupError(f"Invalid iteration count: {iterations.count!r}", phase=phase.name,
                                      reason="count must be an integer >= 0")
            if phase.key_selection == KeySelection.SEQUENTIAL and iterations.count > 0:
                # Fails with GeneratorExhaustion when count exceeds the key domain
                self.keys.key_at(iterations.count - 1)
        elif isinstance(iterations, TimeBound):
            if not isinstance(iterations.duration_seconds, (int, float)) or iterations.duration_seconds <= 0:
                raise PhaseSetupError(f"Invalid phase duration: {iterations.duration_seconds!r}",
                                      phase=phase.name, reason="duration must be > 0 seconds")
        else:
            raise PhaseSetupError(f"Unknown iteration policy: {iterations!r}", phase=phase.name,
                                  reason="expected CountBound or TimeBound")

        plans = self.controller.plan(iterations, phase.concurrency, self.keys.domain_size, phase.name)
        self.logger.debug(f'Prepared "{phase.name}": {phase.describe()}')
        return PreparedPhase(phase=phase, operation=operation, plans=plans)

    def execute(self, phase: Union[WorkloadPhase, PreparedPhase]) -> PhaseResult:
        """
        Run a phase to completion.

        Blocks until every worker has finished (count exhausted or expiry
        reached), then merges the per-worker recorders into a PhaseResult.
        """
        prepared = phase if isinstance(phase, PreparedPhase) else self.prepare(phase)
        phase = prepared.phase
        plans = prepared.plans

        stop_flag = ExpiryFlag()
        recorders = [OutcomeRecorder() for _ in plans]
        failures: List[BaseException] = []
        threads = [
            threading.Thread(target=self._run_worker, args=(prepared, plan, recorder, stop_flag, failures),
                             name=f"{phase.name.replace(' ', '-').lower()}-{plan.worker_index}", daemon=True)
            for plan, recorder in zip(plans, recorders)
        ]

        with self._state_lock:
            self._active_flag = stop_flag
            if self._stop_requested:
                stop_flag.expire()

        self.logger.status(f'Starting "{phase.name}": {phase.describe()}')
        started_at = datetime.datetime.now().isoformat()
        start = time.perf_counter()
        try:
            if isinstance(phase.iterations, TimeBound):
                stop_flag.arm(phase.iterations.duration_seconds)
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
        finally:
            stop_flag.disarm()
            with self._state_lock:
                self._active_flag = None
        elapsed = time.perf_counter() - start
        finished_at = datetime.datetime.now().isoformat()

        if failures:
            self.logger.error(f'{len(failures)} worker(s) of "{phase.name}" failed unexpectedly')
            raise failures[0]

        result = PhaseResult(
            phase_name=phase.name,
            operation=phase.operation,
            concurrency=phase.concurrency,
            iterations=phase.iterations.describe(),
            elapsed_seconds=elapsed,
            started_at=started_at,
            finished_at=finished_at,
            categories=OutcomeRecorder.merge(recorders, prepared.operation.categories),
            stopped_early=self.stop_requested,
        )
        throughput = result.total_operations / elapsed if elapsed > 0 else 0.0
        self.logger.status(f'Finished "{phase.name}": {result.total_operations} operations in {elapsed:.2f}s '
                           f'({throughput:,.0f} ops/s)')
        return result

    def stop(self) -> None:
        """Ask the running phase (and any later one) to stop after the current operation."""
        with self._state_lock:
            self._stop_requested = True
            if self._active_flag is not None:
                self._active_flag.expire()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def _key_stream(self, phase: WorkloadPhase, plan: WorkerPlan):
        if phase.key_selection == KeySelection.RANDOM:
            rng = self.sampler.spawn_rng(plan.worker_index)
            batches = iter(lambda: self.sampler.sample_keys(self.KEY_BATCH_SIZE, rng).tolist(), None)
            keys = itertools.chain.from_iterable(batches)
            if plan.time_bound:
                return keys
            return itertools.islice(keys, len(plan.index_range))

        indexes = itertools.cycle(plan.index_range) if plan.time_bound else iter(plan.index_range)
        return (self.keys.key_at(i) for i in indexes)

    def _run_worker(self, prepared: PreparedPhase, plan: WorkerPlan, recorder: OutcomeRecorder,
                    stop_flag: ExpiryFlag, failures: List[BaseException]):
        operation = prepared.operation
        cache = self.cache
        value_for = self.values.value_for if operation.needs_value else None
        error_category = operation.error_category
        errors = 0
        perf_counter = time.perf_counter

        try:
            for key in self._key_stream(prepared.phase, plan):
                if stop_flag.is_expired():
                    break
                value = value_for(key) if value_for else None
                start = perf_counter()
                try:
                    category = operation.execute(cache, key, value)
                except Exception as e:
                    latency = perf_counter() - start
                    category = error_category
                    errors += 1
                    if errors == 1:
                        self.logger.warning(f'{operation.kind.name} of key {key} failed: {e}. '
                                            f'Further errors of this worker are logged at debug level')
                    else:
                        self.logger.debug(f'{operation.kind.name} of key {key} failed: {e}')
                else:
                    latency = perf_counter() - start
                recorder.record(category, latency)
        except Exception as e:
            # Not a cache failure: key generation or bookkeeping broke, so the phase result is unusable
            self.logger.error(f'Worker {plan.worker_index} of "{prepared.phase.name}" crashed: {e}')
            failures.append(e)

        if errors:
            self.logger.verbose(f'Worker {plan.worker_index} of "{prepared.phase.name}" recorded {errors} error(s)')
