"""
Run orchestration.

A run moves through a fixed state machine:

    INIT -> LOAD_PHASE -> (sampler starts) -> TEST_PHASE -> SHUTDOWN

Any failure before SHUTDOWN moves the run to ABORTED instead. INIT validates
the configuration and prepares both phases, so a bad setting or a key index
outside the domain aborts the run before any worker starts.
Both terminal states stop the sampler and close the cache exactly once; the
report is built from whatever phases completed. The run never exits the
process: run() returns a RunResult whose exit_code the CLI hands to sys.exit.
"""

import threading
import time

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cachebench.cb_logging import setup_logging
from cachebench.concurrency import CountBound, TimeBound
from cachebench.config import (
    EXIT_CODE,
    KeySelection,
    LOAD_PHASE_NAME,
    OperationKind,
    RunState,
    TEST_PHASE_NAME,
)
from cachebench.errors import (
    CacheBenchException,
    ConfigurationError,
    PhaseSetupError,
    ReportWriteError,
    RunInterrupted,
)
from cachebench.generators import build_generators
from cachebench.phase import PhaseExecutor, WorkloadPhase
from cachebench.progress import RunProgress
from cachebench.reporting.formats import write_report
from cachebench.reporting.sink import PhaseResult, Report, ReportSink
from cachebench.sampler import StatisticsSampler, StatisticsSnapshot
from cachebench.stores import create_cache

ALLOWED_TRANSITIONS = {
    RunState.INIT: {RunState.LOAD_PHASE, RunState.ABORTED},
    RunState.LOAD_PHASE: {RunState.TEST_PHASE, RunState.ABORTED},
    RunState.TEST_PHASE: {RunState.SHUTDOWN, RunState.ABORTED},
    RunState.SHUTDOWN: set(),
    RunState.ABORTED: set(),
}


def build_phases(config) -> List[WorkloadPhase]:
    """
    The two phases of a run.

    The load phase PUTs every key of the domain once, in index order. The test
    phase GETs keys drawn from the configured distribution until the test
    duration expires.
    """
    return [
        WorkloadPhase(
            name=LOAD_PHASE_NAME,
            operation=OperationKind.PUT,
            iterations=CountBound(config.key_domain_size),
            concurrency=config.load_concurrency,
            key_selection=KeySelection.SEQUENTIAL,
        ),
        WorkloadPhase(
            name=TEST_PHASE_NAME,
            operation=OperationKind.GET,
            iterations=TimeBound(config.test_duration_seconds),
            concurrency=config.test_concurrency,
            key_selection=KeySelection.RANDOM,
        ),
    ]


@dataclass
class RunResult:
    """Terminal outcome of a run."""
    status: RunState
    state_history: List[RunState]
    phase_results: List[PhaseResult] = field(default_factory=list)
    report: Optional[Report] = None
    snapshots: List[StatisticsSnapshot] = field(default_factory=list)
    error: Optional[BaseException] = None
    report_error: Optional[ReportWriteError] = None
    report_paths: List[str] = field(default_factory=list)
    runtime_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == RunState.SHUTDOWN and self.report_error is None

    @property
    def exit_code(self) -> EXIT_CODE:
        if self.status == RunState.SHUTDOWN:
            return EXIT_CODE.REPORT_ERROR if self.report_error is not None else EXIT_CODE.SUCCESS
        if isinstance(self.error, RunInterrupted):
            return EXIT_CODE.INTERRUPTED
        if isinstance(self.error, ConfigurationError):
            return EXIT_CODE.CONFIG_ERROR
        if isinstance(self.error, PhaseSetupError):
            return EXIT_CODE.ABORTED
        return EXIT_CODE.FAILURE

    def phase(self, name: str) -> Optional[PhaseResult]:
        for result in self.phase_results:
            if result.phase_name == name:
                return result
        return None


class RunOrchestrator:
    """
    Sequences the phases of one run and owns the cache and the sampler.

    Args:
        config: HarnessConfig of the run.
        cache: CacheUnderTest to drive. When omitted an OnHeapCache is built
            from the configuration. Either way the orchestrator closes it.
        logger: Optional logger.
        show_progress: Force the Rich phase display on or off; detected from
            the terminal when None.
    """

    def __init__(self, config, cache=None, logger=None, show_progress: Optional[bool] = None):
        self.config = config
        self.cache = cache
        self.logger = logger or setup_logging("cachebench")
        self.show_progress = show_progress

        self.state = RunState.INIT
        self.state_history: List[RunState] = [RunState.INIT]
        self.sink = ReportSink(logger=self.logger)
        self.executor: Optional[PhaseExecutor] = None
        self.sampler: Optional[StatisticsSampler] = None
        self.progress: Optional[RunProgress] = None

        self._stop_event = threading.Event()
        self._cache_closed = False
        self._started = False

    def request_stop(self) -> None:
        """Stop the run cooperatively. Safe to call from a signal handler or another thread."""
        if not self._stop_event.is_set():
            self.logger.warning("Stop requested, finishing the current operation of every worker")
        self._stop_event.set()
        executor = self.executor
        if executor is not None:
            executor.stop()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> RunResult:
        """Execute the run to a terminal state and return its result."""
        if self._started:
            raise RuntimeError("A RunOrchestrator can only run once")
        self._started = True

        start_time = time.perf_counter()
        error: Optional[BaseException] = None

        self.progress = RunProgress(interactive=self.show_progress)
        with self.progress:
            try:
                load, test = self._setup()

                self._transition(RunState.LOAD_PHASE)
                self._run_phase(load)
                self._start_sampler()

                self._transition(RunState.TEST_PHASE)
                self._run_phase(test)
            except CacheBenchException as e:
                error = e
                self.logger.error(f"Run aborted in state {self.state.name}:\n{e}")
            except Exception as e:
                error = e
                self.logger.error(f"Run aborted in state {self.state.name} by an unexpected error: {e}",
                                  exc_info=True)
            finally:
                self._stop_sampler()
                self._close_cache()

        self._transition(RunState.ABORTED if error is not None else RunState.SHUTDOWN)
        runtime = time.perf_counter() - start_time
        result = self._finalize(error, runtime)

        self.logger.status(f"Run finished with status {result.status.name} in {runtime:.2f}s "
                           f"(exit code {int(result.exit_code)})")
        return result

    def _setup(self):
        self.config.validate()
        keys, key_sampler, values = build_generators(self.config)
        if self.cache is None:
            self.cache = create_cache(self.config)

        self.executor = PhaseExecutor(self.cache, keys, key_sampler, values, logger=self.logger)
        if self._stop_event.is_set():
            self.executor.stop()

        prepared = [self.executor.prepare(phase) for phase in build_phases(self.config)]

        self.sampler = StatisticsSampler(
            self.cache,
            self.config.tier_name,
            self.config.sampling_interval_seconds,
            logger=self.logger,
            initial_delay_seconds=self.config.sampler_initial_delay_seconds,
            on_snapshot=self.progress.snapshot_taken if self.progress is not None else None,
        )
        self.logger.verbose(f"Key domain: [0, {self.config.key_domain_size}), "
                            f"payload: {self.config.payload_size_bytes} bytes, cache: {self.config.cache_name}")
        return prepared

    def _run_phase(self, prepared) -> PhaseResult:
        if self._stop_event.is_set():
            raise RunInterrupted(f'Run interrupted before "{prepared.phase.name}"', phase=prepared.phase.name)
        if self.progress is not None:
            self.progress.phase_started(prepared.phase)
        result = self.executor.execute(prepared)
        if self.progress is not None:
            self.progress.phase_finished(result)
        self.sink.add_phase(result)
        if self._stop_event.is_set():
            raise RunInterrupted(f'Run interrupted during "{prepared.phase.name}"', phase=prepared.phase.name)
        return result

    def _transition(self, new_state: RunState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid run state transition {self.state.name} -> {new_state.name}")
        self.logger.verbose(f"Run state: {self.state.name} -> {new_state.name}")
        self.state = new_state
        self.state_history.append(new_state)

    def _start_sampler(self) -> None:
        if self.sampler is not None and not self._stop_event.is_set():
            self.sampler.start()

    def _stop_sampler(self) -> None:
        if self.sampler is not None:
            self.sampler.stop(timeout=max(5.0, 2 * self.sampler.interval_seconds))

    def _close_cache(self) -> None:
        if self.cache is None or self._cache_closed:
            return
        self._cache_closed = True
        try:
            self.cache.close()
            self.logger.verbose("Cache closed")
        except Exception as e:
            self.logger.warning(f"Closing the cache failed: {e}")

    def _metadata(self, error, runtime) -> Dict[str, Any]:
        return {
            'status': self.state.name,
            'state_history': [s.name for s in self.state_history],
            'runtime_seconds': runtime,
            'error': str(error) if error is not None else None,
            'key_domain_size': self.config.key_domain_size,
            'skipped_sampling_cycles': self.sampler.skipped_cycles if self.sampler else 0,
            'config': self.config.as_dict(),
        }

    def _finalize(self, error, runtime) -> RunResult:
        snapshots = self.sampler.snapshots if self.sampler else []
        report = self.sink.build_report(
            categories=self.config.reported_categories,
            snapshots=snapshots,
            metadata=self._metadata(error, runtime),
        )
        for phase in report.phases:
            counts = ", ".join(f"{name}: {summary['count']}" for name, summary in phase['categories'].items())
            self.logger.result(f"{phase['name']}: {phase['total_operations']} operations, "
                               f"{phase['throughput_ops_per_sec']:,.0f} ops/s" + (f" ({counts})" if counts else ""))

        result = RunResult(
            status=self.state,
            state_history=list(self.state_history),
            phase_results=self.sink.phase_results,
            report=report,
            snapshots=snapshots,
            error=error,
            runtime_seconds=runtime,
        )

        output_path = self.config.report_output_path
        if output_path and self.sink.phase_results:
            for format_name in self.config.report_formats:
                try:
                    path = write_report(output_path, report, format_name)
                except ReportWriteError as e:
                    self.logger.error(str(e))
                    if result.report_error is None:
                        result.report_error = e
                    continue
                result.report_paths.append(path)
                self.logger.status(f"Wrote {format_name} report to {path}")
        elif output_path:
            self.logger.verbose("No phase completed, skipping report output")
        return result
