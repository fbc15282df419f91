"""CLI progress display for deployment runs.

This module provides a Rich-based progress display that acts as the
engine's reporting sink and status observer.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .deploy.modes import RunStatus
from .deploy.run import DeploymentRun
from .output import OutputFormatter

_OUTCOME_PREFIXES = ("SUCCESS:", "FAILED:", "SKIPPED:")


class DeployProgressDisplay:
    """Rich-based progress display for a deployment.

    Log lines are forwarded to the output formatter; every per-file line
    advances the progress bar. Use as a context manager around
    ``DeploymentEngine.deploy``.
    """

    def __init__(self, out: OutputFormatter, enabled: bool = True):
        """Initialize the progress display.

        Args:
            out: Output formatter receiving the deployment log
            enabled: When False only the log is written
        """
        self.out = out
        self.enabled = enabled and not out.quiet and not out.json_output
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def __enter__(self) -> "DeployProgressDisplay":
        if self.enabled:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                console=self.out.console,
                transient=True,
            )
            self._progress.start()
            self._task = self._progress.add_task("Resolving changes...", total=None)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task = None

    def append_line(self, text: str) -> None:
        self.out.append_line(text)
        if self._progress is not None and self._task is not None:
            if text.startswith(_OUTCOME_PREFIXES):
                self._progress.advance(self._task)

    def append_warning(self, text: str) -> None:
        self.out.append_warning(text)

    def report_progress(self, message: str) -> None:
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, description=message)

    def on_status(self, run: DeploymentRun) -> None:
        """Status observer: size the bar once candidates are known."""
        if self._progress is None or self._task is None:
            return
        if run.status is RunStatus.MAPPING:
            self._progress.update(self._task, total=len(run.candidates))
        elif run.status.is_terminal:
            self._progress.update(
                self._task, description=f"Deployment {run.status.value}"
            )
