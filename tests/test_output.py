"""Tests for output formatting and the progress display."""

import io
import json
from pathlib import Path

from rich.console import Console

from ideploy.cli_progress import DeployProgressDisplay
from ideploy.deploy.modes import ChangeSelection, RunStatus
from ideploy.deploy.registry import DeploymentTarget
from ideploy.deploy.run import DeploymentRun
from ideploy.deploy.scanner import CandidateFile
from ideploy.output import OutputFormatter


def make_formatter(**kwargs):
    buffer = io.StringIO()
    console = Console(file=buffer, width=200, highlight=False)
    return OutputFormatter(console=console, **kwargs), buffer


class TestOutputFormatter:
    """Tests for OutputFormatter."""

    def test_info_and_success(self):
        out, buffer = make_formatter()
        out.info("working")
        out.success("done")
        assert "working" in buffer.getvalue()
        assert "done" in buffer.getvalue()

    def test_quiet_suppresses_info_but_not_errors(self):
        out, buffer = make_formatter(quiet=True)
        out.info("hidden")
        out.print("hidden too")
        out.warning("careful")
        out.error("broken")
        text = buffer.getvalue()
        assert "hidden" not in text
        assert "careful" in text
        assert "Error: broken" in text

    def test_json_error(self):
        out, buffer = make_formatter(json_output=True)
        out.error("broken")
        assert json.loads(buffer.getvalue()) == {"error": "broken"}

    def test_print_summary_json(self):
        out, buffer = make_formatter(json_output=True)
        out.print_summary("Title", [("Target", "/app")])
        assert json.loads(buffer.getvalue()) == {"Target": "/app"}

    def test_print_summary_table(self):
        out, buffer = make_formatter()
        out.print_summary("Deployment Summary", [("Failed", "0")])
        assert "Deployment Summary" in buffer.getvalue()
        assert "Failed" in buffer.getvalue()

    def test_append_line_records_log(self):
        out, buffer = make_formatter(quiet=True)
        out.append_line("SUCCESS: a -> /a")
        out.report_progress("ignored")
        assert out.log_lines == ["SUCCESS: a -> /a"]
        assert buffer.getvalue() == ""

    def test_append_warning_shown_when_quiet(self):
        """Test warnings reach the log and the console even in quiet mode."""
        out, buffer = make_formatter(quiet=True)
        out.append_warning("No staged changes to deploy.")
        assert out.log_lines == ["No staged changes to deploy."]
        assert "No staged changes to deploy." in buffer.getvalue()

    def test_append_warning_hidden_in_json(self):
        out, buffer = make_formatter(json_output=True)
        out.append_warning("No working changes to deploy.")
        assert out.log_lines == ["No working changes to deploy."]
        assert buffer.getvalue() == ""


class TestDeployProgressDisplay:
    """Tests for DeployProgressDisplay."""

    def make_run(self) -> DeploymentRun:
        target = DeploymentTarget.from_address("/p", "/app")
        run = DeploymentRun(target=target, selection=ChangeSelection.FULL)
        run.candidates = [
            CandidateFile(Path("/p/a"), "a"),
            CandidateFile(Path("/p/b"), "b"),
        ]
        return run

    def test_disabled_when_quiet(self):
        out, _ = make_formatter(quiet=True)
        display = DeployProgressDisplay(out)
        assert not display.enabled

    def test_tracks_outcomes(self):
        out, buffer = make_formatter()
        run = self.make_run()

        with DeployProgressDisplay(out) as display:
            run.status = RunStatus.MAPPING
            display.on_status(run)
            display.append_line("SUCCESS: a -> /app/a")
            display.append_line("FAILED: b -> /app/b: denied")
            display.report_progress("Deploying")
            task = display._progress.tasks[0]
            assert task.total == 2
            assert task.completed == 2
            run.status = RunStatus.FAILED
            display.on_status(run)

        assert display._progress is None
        assert out.log_lines == ["SUCCESS: a -> /app/a", "FAILED: b -> /app/b: denied"]
        assert "FAILED: b" in buffer.getvalue()

    def test_log_only_when_disabled(self):
        out, _ = make_formatter()
        with DeployProgressDisplay(out, enabled=False) as display:
            display.on_status(self.make_run())
            display.append_warning("No staged changes to deploy.")
            display.append_line("Deployment finished.")
        assert out.log_lines == [
            "No staged changes to deploy.",
            "Deployment finished.",
        ]
