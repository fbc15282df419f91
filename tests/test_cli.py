"""Unit tests for the ideploy CLI commands."""

import json
import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from ideploy.cli import main
from ideploy.deploy import JsonSettingsStore, TargetRegistry
from ideploy.deploy.transport import CommandResult


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def env(temp_dir):
    """Environment pointing the settings store at a temporary directory."""
    return {"IDEPLOY_CONFIG_DIR": str(temp_dir / "config")}


@pytest.fixture
def project(temp_dir):
    root = temp_dir / "project"
    root.mkdir()
    (root / "a.txt").write_text("alpha")
    (root / "sub").mkdir()
    (root / "sub" / "b.txt").write_text("beta")
    return root


@pytest.fixture
def mount(temp_dir):
    mount = temp_dir / "mount"
    mount.mkdir()
    return mount


def stored_target(temp_dir: Path, project: Path):
    store = JsonSettingsStore(temp_dir / "config" / "settings.json")
    return TargetRegistry(store).get(project)


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        """Test main help shows all commands."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "ideploy" in result.output
        assert "deploy" in result.output
        assert "target" in result.output
        assert "init" in result.output
        assert "upload" in result.output
        assert "actions" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestTargetCommands:
    """Tests for the target command group."""

    def test_set_and_show(self, runner, env, temp_dir, project):
        result = runner.invoke(
            main, ["target", "set", str(project), "/home/u/app/"], env=env
        )
        assert result.exit_code == 0
        assert stored_target(temp_dir, project).address == "/home/u/app"

        result = runner.invoke(main, ["target", "show", str(project)], env=env)
        assert result.exit_code == 0
        assert "/home/u/app" in result.output

    def test_set_library(self, runner, env, temp_dir, project):
        result = runner.invoke(main, ["target", "set", str(project), "devlib"], env=env)
        assert result.exit_code == 0
        target = stored_target(temp_dir, project)
        assert target.address == "DEVLIB"
        assert not target.is_free_form

    @patch("ideploy.cli.getpass.getuser", return_value="alice")
    def test_set_default_address(self, mock_getuser, runner, env, temp_dir, project):
        """Test the target defaults to a builds directory in the user's home."""
        result = runner.invoke(main, ["target", "set", str(project)], env=env)
        assert result.exit_code == 0
        assert stored_target(temp_dir, project).address == "/home/alice/builds/project"

    def test_set_invalid_library(self, runner, env, temp_dir, project):
        """Test an invalid target is rejected and not stored."""
        result = runner.invoke(
            main, ["target", "set", str(project), "WAYTOOLONGLIB"], env=env
        )
        assert result.exit_code == 1
        assert "longer than" in result.output
        assert stored_target(temp_dir, project) is None

    def test_show_unconfigured(self, runner, env, project):
        result = runner.invoke(main, ["target", "show", str(project)], env=env)
        assert result.exit_code == 1
        assert "not configured" in result.output

    def test_show_json(self, runner, env, project):
        runner.invoke(main, ["target", "set", str(project), "/app"], env=env)
        result = runner.invoke(main, ["--json", "target", "show", str(project)], env=env)
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["Target"] == "/app"
        assert data["Mode"] == "free-form"

    def test_list(self, runner, env, temp_dir, project):
        other = temp_dir / "other"
        other.mkdir()
        runner.invoke(main, ["target", "set", str(project), "/app"], env=env)
        runner.invoke(main, ["target", "set", str(other), "devlib"], env=env)

        result = runner.invoke(main, ["--json", "target", "list"], env=env)

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            str(project): "/app",
            str(other): "DEVLIB",
        }

    def test_list_empty(self, runner, env):
        result = runner.invoke(main, ["target", "list"], env=env)
        assert result.exit_code == 0
        assert "No deployment targets configured" in result.output


class TestDeployCommand:
    """Tests for the deploy command."""

    def test_unconfigured_project(self, runner, env, project):
        result = runner.invoke(main, ["deploy", str(project)], env=env)
        assert result.exit_code == 1
        assert "is not configured for deployment" in result.output

    def test_full_free_form(self, runner, env, project, mount):
        runner.invoke(main, ["target", "set", str(project), "/app"], env=env)

        result = runner.invoke(
            main,
            ["deploy", str(project), "--method", "all", "--mount-root", str(mount)],
            env=env,
        )

        assert result.exit_code == 0
        assert "SUCCESS: a.txt -> /app/a.txt" in result.output
        assert (mount / "app" / "a.txt").read_text() == "alpha"
        assert (mount / "app" / "sub" / "b.txt").read_text() == "beta"

    def test_ignore_option(self, runner, env, project, mount):
        runner.invoke(main, ["target", "set", str(project), "/app"], env=env)

        result = runner.invoke(
            main,
            [
                "--quiet",
                "deploy",
                str(project),
                "-m",
                "all",
                "--mount-root",
                str(mount),
                "--ignore",
                "sub/",
            ],
            env=env,
        )

        assert result.exit_code == 0
        assert (mount / "app" / "a.txt").exists()
        assert not (mount / "app" / "sub").exists()

    def test_json_summary(self, runner, env, project, mount):
        runner.invoke(main, ["target", "set", str(project), "/app"], env=env)

        result = runner.invoke(
            main,
            [
                "--json",
                "deploy",
                str(project),
                "--method",
                "all",
                "--mount-root",
                str(mount),
            ],
            env=env,
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["status"] == "succeeded"
        assert data["succeeded"] == 2
        assert data["log"][-1] == "Deployment finished."

    def test_invalid_workers(self, runner, env, project):
        result = runner.invoke(
            main, ["deploy", str(project), "--workers", "0"], env=env
        )
        assert result.exit_code == 1
        assert "--workers" in result.output

    @patch("ideploy.cli.SystemCommandRunner")
    def test_failed_run_exits_non_zero(
        self, mock_runner_class, runner, env, project, mount
    ):
        """Test a member write failure makes the command fail."""
        commands = Mock()
        commands.run.return_value = CommandResult(1, stderr="CPF9999 not authorized")
        mock_runner_class.return_value = commands
        (project / "qsrc").mkdir()
        (project / "qsrc" / "hello.rpgle").write_text("dsply 'hi';")
        runner.invoke(main, ["target", "set", str(project), "MYLIB"], env=env)

        result = runner.invoke(
            main,
            ["deploy", str(project), "--method", "all", "--mount-root", str(mount)],
            env=env,
        )

        assert result.exit_code == 1
        assert "FAILED: qsrc/hello.rpgle" in result.output
        assert "SKIPPED: a.txt" in result.output


class TestInitCommand:
    """Tests for the init command."""

    def test_init(self, runner, project):
        result = runner.invoke(main, ["init", str(project)])
        assert result.exit_code == 0
        assert (project / "iproj.json").exists()
        assert (project / ".env").exists()

    def test_init_existing(self, runner, project):
        runner.invoke(main, ["init", str(project)])
        result = runner.invoke(main, ["init", str(project)])
        assert result.exit_code == 0
        assert "already exists" in result.output


class TestUploadCommand:
    """Tests for the upload command."""

    @patch("ideploy.cli.SystemCommandRunner")
    def test_upload(self, mock_runner_class, runner, temp_dir, project):
        commands = Mock()
        commands.run.return_value = CommandResult(0)
        mock_runner_class.return_value = commands
        (project / "iproj.json").write_text(json.dumps({"objlib": "MYLIB"}))
        source = project / "qrpglesrc" / "hello.rpgle"
        source.parent.mkdir()
        source.write_text("dsply 'hi';")

        result = runner.invoke(
            main,
            ["upload", str(source), "--project", str(project)],
            env={"IDEPLOY_REMOTE_TMP": str(temp_dir / "stage")},
        )

        assert result.exit_code == 0
        assert "SUCCESS: qrpglesrc/hello.rpgle -> MYLIB/QRPGLESRC/HELLO" in result.output
        issued = [c.args[0] for c in commands.run.call_args_list]
        assert "CRTSRCPF FILE(MYLIB/QRPGLESRC) RCDLEN(112)" in issued
        assert any(
            "TOMBR('/QSYS.LIB/MYLIB.LIB/QRPGLESRC.FILE/HELLO.MBR')" in cmd
            for cmd in issued
        )

    def test_upload_without_project_config(self, runner, project):
        result = runner.invoke(
            main, ["upload", str(project / "a.txt"), "--project", str(project)]
        )
        assert result.exit_code == 1
        assert "iproj.json" in result.output


class TestActionsCommand:
    """Tests for the actions command."""

    def test_lists_matching_actions(self, runner, project):
        runner.invoke(main, ["init", str(project)])

        result = runner.invoke(
            main,
            ["--json", "actions", "qrpglesrc/hello.RPGLE", "--project", str(project)],
        )

        assert result.exit_code == 0
        names = [action["name"] for action in json.loads(result.stdout)]
        assert names == [
            "Compile: CRTBNDRPG",
            "Compile: CRTRPGMOD",
            "Compile: CRTPGM",
        ]

    def test_plain_output(self, runner, project):
        runner.invoke(main, ["init", str(project)])

        result = runner.invoke(
            main, ["actions", "hello.clle", "--project", str(project)]
        )

        assert result.exit_code == 0
        assert "Compile: CRTBNDCL" in result.output
        assert "CRTBNDRPG" not in result.output

    def test_project_without_actions(self, runner, project):
        """Test a project with an objlib but no actions is rejected."""
        (project / "iproj.json").write_text(json.dumps({"objlib": "MYLIB"}))

        result = runner.invoke(
            main, ["actions", "hello.rpgle", "--project", str(project)]
        )

        assert result.exit_code == 1
        assert "actions" in result.output
