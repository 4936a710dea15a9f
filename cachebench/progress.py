"""Live run display using the Rich library.

Each workload phase gets one row once it starts. A count-bound phase shows how
many operations it completed; a time-bound phase fills its bar with elapsed
time whenever the statistics sampler reports, next to the tier's latest hit
count. Nothing is drawn when output is not an interactive terminal: the
executor and the sampler log the same events at STATUS level.
"""

import time

from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, ProgressColumn, SpinnerColumn, Task, TaskID, TextColumn
from rich.text import Text

from cachebench.concurrency import TimeBound


def is_interactive_terminal() -> bool:
    """Return True when output goes to an interactive terminal."""
    return Console().is_terminal


class PhaseBoundColumn(ProgressColumn):
    """Operations done for a count-bound phase, elapsed/duration for a time-bound one."""

    def render(self, task: Task) -> Text:
        if task.fields.get('time_bound'):
            return Text(f"{task.completed:.1f}s/{task.total:g}s", style="progress.elapsed")
        return Text(f"{int(task.completed):,}/{int(task.total):,} ops", style="progress.download")


class RunProgress:
    """
    Progress rows for the phases of one run.

    Args:
        interactive: Force the display on or off; detected from the terminal
            when None.
        console: Rich console to draw on, mainly for tests.

    Usage:
        with RunProgress() as progress:
            progress.phase_started(phase)
            result = executor.execute(phase)
            progress.phase_finished(result)
    """

    def __init__(self, interactive: Optional[bool] = None, console: Optional[Console] = None):
        if interactive is None:
            interactive = is_interactive_terminal()
        self.enabled = interactive
        self._progress: Optional[Progress] = None
        if interactive:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                PhaseBoundColumn(),
                TextColumn("{task.fields[detail]}"),
                console=console,
            )
        self._active: Optional[TaskID] = None
        self._active_time_bound = False
        self._active_started = 0.0
        self._active_total = 0.0

    def __enter__(self):
        if self._progress is not None:
            self._progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._progress is not None:
            self._progress.stop()
        return False

    def phase_started(self, phase) -> None:
        """Add a row for ``phase`` (a WorkloadPhase) and make it the active one."""
        if self._progress is None:
            return
        time_bound = isinstance(phase.iterations, TimeBound)
        total = phase.iterations.duration_seconds if time_bound else phase.iterations.count
        self._active = self._progress.add_task(phase.name, total=total, time_bound=time_bound, detail="")
        self._active_time_bound = time_bound
        self._active_started = time.monotonic()
        self._active_total = total

    def phase_finished(self, result) -> None:
        """Complete the active row from a PhaseResult."""
        if self._progress is None or self._active is None:
            return
        if self._active_time_bound:
            completed = min(result.elapsed_seconds, self._active_total)
        else:
            completed = result.total_operations
        throughput = result.total_operations / result.elapsed_seconds if result.elapsed_seconds > 0 else 0.0
        detail = f"{result.total_operations:,} ops, {throughput:,.0f} ops/s"
        if result.stopped_early:
            detail += " [stopped early]"
        self._progress.update(self._active, completed=completed, detail=detail)
        self._progress.stop_task(self._active)
        self._active = None

    def snapshot_taken(self, snapshot) -> None:
        """Advance the active time-bound row and show the snapshot's hit count."""
        if self._progress is None or self._active is None or not self._active_time_bound:
            return
        elapsed = min(time.monotonic() - self._active_started, self._active_total)
        self._progress.update(self._active, completed=elapsed, detail=f"{snapshot.tier} hits: {snapshot.hits:,}")


__all__ = [
    "is_interactive_terminal",
    "PhaseBoundColumn",
    "RunProgress",
]
