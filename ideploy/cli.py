"""CLI interface for ideploy."""

import getpass
import logging
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .cli_progress import DeployProgressDisplay
from .config import config
from .deploy import (
    ChangeSelection,
    DeploymentEngine,
    DeploymentTarget,
    GitVersionControl,
    JsonSettingsStore,
    LocalTransport,
    MemberContentWriter,
    ObjectProvisioner,
    SystemCommandRunner,
    TargetRegistry,
    TransferExecutor,
    TransferStatus,
    default_address,
)
from .exceptions import DeployConfigError, DeployError
from .output import OutputFormatter
from .project import create_default_project, load_project_config, upload_sources

logger = logging.getLogger(__name__)

METHOD_CHOICES = ["working", "staged", "all"]


def _registry() -> TargetRegistry:
    return TargetRegistry(JsonSettingsStore(config.settings_path))


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(__version__)
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """ideploy - Deploy local source trees to IBM i."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("ideploy").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.group()
def target() -> None:
    """Manage deployment targets."""


@target.command("set")
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@click.argument("address", required=False)
@click.pass_context
def target_set(ctx: Any, path: str, address: Optional[str]) -> None:
    """Set the deployment target of a project.

    ADDRESS is an IFS directory (starting with /) or a library name. When
    omitted, /home/<user>/builds/<project> is used.
    """
    out: OutputFormatter = ctx.obj["out"]
    project_root = Path(path).resolve()
    if address is None:
        address = default_address(project_root, getpass.getuser())

    try:
        DeploymentTarget.from_address(str(project_root), address).validate()
        deployment_target = _registry().set(project_root, address)
    except DeployConfigError as e:
        out.error(str(e))
        ctx.exit(1)

    out.print_summary(
        "Deployment Target",
        [
            ("Project", str(project_root)),
            ("Target", deployment_target.address),
            ("Mode", deployment_target.mode.value),
        ],
    )


@target.command("show")
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@click.pass_context
def target_show(ctx: Any, path: str) -> None:
    """Show the deployment target of a project."""
    out: OutputFormatter = ctx.obj["out"]
    project_root = Path(path).resolve()

    deployment_target = _registry().get(project_root)
    if deployment_target is None:
        out.warning(
            f"{project_root} is not configured for deployment. "
            f"Use 'ideploy target set' first."
        )
        ctx.exit(1)

    out.print_summary(
        "Deployment Target",
        [
            ("Project", str(project_root)),
            ("Target", deployment_target.address),
            ("Mode", deployment_target.mode.value),
        ],
    )


@target.command("list")
@click.pass_context
def target_list(ctx: Any) -> None:
    """List every project with a deployment target."""
    out: OutputFormatter = ctx.obj["out"]

    targets = _registry().all()
    if not targets:
        out.warning("No deployment targets configured.")
        return

    out.print_summary("Deployment Targets", sorted(targets.items()))


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@click.option(
    "--method",
    "-m",
    type=click.Choice(METHOD_CHOICES, case_sensitive=False),
    default="working",
    show_default=True,
    help="Which files to deploy",
)
@click.option(
    "--workers",
    "-j",
    type=int,
    default=None,
    help="Number of parallel transfers (default: IDEPLOY_CONCURRENCY or 5)",
)
@click.option(
    "--mount-root",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Local directory where the host's IFS root is mounted",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="Additional gitignore-style pattern to exclude (repeatable)",
)
@click.pass_context
def deploy(
    ctx: Any,
    path: str,
    method: str,
    workers: Optional[int],
    mount_root: Optional[str],
    ignore: tuple[str, ...],
) -> None:
    """Deploy a project to its configured target.

    Examples:
        ideploy deploy                     # working changes of the current dir
        ideploy deploy --method staged     # staged changes only
        ideploy deploy ./app --method all  # the whole tree
    """
    out: OutputFormatter = ctx.obj["out"]
    project_root = Path(path).resolve()
    selection = ChangeSelection.from_string(method)

    if workers is not None and workers < 1:
        out.error("--workers must be at least 1")
        ctx.exit(1)

    transport = LocalTransport(Path(mount_root) if mount_root else None)
    commands = SystemCommandRunner()
    logger.debug(f"Deploying {selection.value} changes of {project_root}")

    with DeployProgressDisplay(out) as display:
        engine = DeploymentEngine(
            _registry(),
            GitVersionControl(),
            transport,
            commands=commands,
            sink=display,
            concurrency=workers,
            status_callback=display.on_status,
        )
        try:
            run = engine.deploy(project_root, selection, list(ignore) or None)
        except DeployError as e:
            out.error(str(e))
            ctx.exit(1)

    if out.json_output:
        data = run.summary()
        data["log"] = out.log_lines
        out.output_json(data)
    elif not run.no_changes:
        out.print_summary(
            "Deployment Summary",
            [
                ("Target", run.target.address),
                ("Status", run.status.value),
                ("Succeeded", str(run.succeeded_count)),
                ("Failed", str(run.failed_count)),
                ("Skipped", str(run.skipped_count)),
            ],
        )
        if run.error:
            out.error(run.error)

    if not run.is_successful:
        ctx.exit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@click.pass_context
def init(ctx: Any, path: str) -> None:
    """Create a default iproj.json and .env in a project."""
    out: OutputFormatter = ctx.obj["out"]
    project_root = Path(path).resolve()

    if not create_default_project(project_root):
        out.warning(f"{project_root / 'iproj.json'} already exists.")
        return

    out.print_summary(
        "Project Initialized",
        [
            ("Project", str(project_root)),
            ("Config file", str(project_root / "iproj.json")),
            ("Note", "Set DEVLIB in .env to the library to build into"),
        ],
    )


@main.command()
@click.argument(
    "files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False)
)
@click.option(
    "--project",
    "-p",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Project root holding iproj.json",
)
@click.pass_context
def upload(ctx: Any, files: tuple[str, ...], project: str) -> None:
    """Upload source files into the project's object library.

    Each file is copied to OBJLIB/<directory>(<name>), creating the source
    file and member when needed.
    """
    out: OutputFormatter = ctx.obj["out"]
    project_root = Path(project).resolve()

    try:
        project_config = load_project_config(project_root)
    except DeployConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    if project_config is None or not project_config.objlib:
        out.error(f"{project_root} has no iproj.json with an objlib")
        ctx.exit(1)

    transport = LocalTransport()
    commands = SystemCommandRunner()
    executor = TransferExecutor(
        transport, writer=MemberContentWriter(transport, commands, config.remote_tmp_dir)
    )
    outcomes = upload_sources(
        project_config,
        [Path(f).resolve() for f in files],
        executor,
        ObjectProvisioner(commands),
    )

    for outcome in outcomes:
        out.append_line(outcome.log_line())
    if out.json_output:
        out.output_json(
            [
                {
                    "file": o.candidate.relative_path,
                    "member": str(o.remote_address) if o.remote_address else None,
                    "status": o.status.value,
                    "detail": o.detail,
                }
                for o in outcomes
            ]
        )

    if any(o.status is TransferStatus.FAILED for o in outcomes):
        ctx.exit(1)

@main.command()
@click.argument("file", type=click.Path(dir_okay=False))
@click.option(
    "--project",
    "-p",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Project root holding iproj.json",
)
@click.pass_context
def actions(ctx: Any, file: str, project: str) -> None:
    """List the project actions that apply to FILE."""
    out: OutputFormatter = ctx.obj["out"]
    project_root = Path(project).resolve()

    try:
        project_config = load_project_config(project_root)
    except DeployConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    if project_config is None or not project_config.is_valid():
        out.error(f"{project_root} has no iproj.json with an objlib and actions")
        ctx.exit(1)

    applicable = project_config.actions_for(Path(file).suffix)
    if out.json_output:
        out.output_json(
            [
                {
                    "name": action.name,
                    "command": action.command,
                    "fileSystem": action.file_system.value,
                }
                for action in applicable
            ]
        )
        return
    if not applicable:
        out.warning(f"No actions apply to {Path(file).name}.")
        return
    for action in applicable:
        out.print(f"{action.name}: {action.command}")



if __name__ == "__main__":
    main()
