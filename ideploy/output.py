"""Console output formatting for ideploy.

``OutputFormatter`` is also the default reporting sink for deployment runs:
the engine writes its outcome log through ``append_line`` and transient
status through ``report_progress``.
"""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Formats CLI output using Rich, with quiet and JSON modes."""

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress informational output (errors are still shown)
            console: Optional Rich console (created on demand)
        """
        self.json_output = json_output
        self.quiet = quiet
        self._console = console
        self.log_lines: list[str] = []

    @property
    def console(self) -> Console:
        if self._console is None:
            self._console = Console(highlight=False, soft_wrap=True)
        return self._console

    def _emit(self, message: str, style: Optional[str] = None) -> None:
        self.console.print(message, style=style, markup=False, highlight=False)

    def print(self, message: str = "") -> None:
        """Print a plain line unless quiet or in JSON mode."""
        if self.quiet or self.json_output:
            return
        self._emit(message)

    def info(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self._emit(message, style="cyan")

    def success(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self._emit(message, style="green")

    def warning(self, message: str) -> None:
        if self.json_output:
            return
        self._emit(message, style="yellow")

    def error(self, message: str) -> None:
        """Print an error. Errors are shown even in quiet mode."""
        if self.json_output:
            self.output_json({"error": message})
            return
        self._emit(f"Error: {message}", style="bold red")

    def output_json(self, data: Any) -> None:
        """Write data as indented JSON."""
        self.console.print_json(json.dumps(data, default=str))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self.json_output:
            self.output_json({label: value for label, value in items})
            return
        if self.quiet:
            return

        table = Table(title=title, show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)

    # Reporting sink interface used by the deployment engine

    def append_line(self, text: str) -> None:
        """Record a line of the deployment log and echo it."""
        self.log_lines.append(text)
        if self.quiet or self.json_output:
            return
        if text.startswith("FAILED"):
            self._emit(text, style="red")
        elif text.startswith("SKIPPED"):
            self._emit(text, style="yellow")
        else:
            self._emit(text)

    def append_warning(self, text: str) -> None:
        """Record a log line that is shown even in quiet mode."""
        self.log_lines.append(text)
        self.warning(text)

    def report_progress(self, message: str) -> None:
        """Transient progress is only shown by progress displays."""
