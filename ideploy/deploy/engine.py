"""Deployment engine: sequences one deployment run end to end."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Union

from ..config import config
from ..exceptions import (
    InvalidTargetError,
    NoTargetConfiguredError,
    RunInProgressError,
)
from .executor import TransferExecutor
from .ignore import IgnoreRuleSet
from .mapper import FreeFormAddress, MappingSkip, StructuredAddress, map_candidate
from .modes import ChangeSelection, RunStatus
from .provisioner import ObjectProvisioner
from .registry import DeploymentTarget, TargetRegistry
from .run import DeploymentRun, TransferOutcome
from .scanner import ChangeSetResolver
from .transport import (
    CommandRunner,
    ContentWriter,
    MemberContentWriter,
    NullSink,
    ReportingSink,
    Transport,
)
from .vcs import VersionControl

logger = logging.getLogger(__name__)

StatusCallback = Callable[[DeploymentRun], None]


class DeploymentEngine:
    """Deploys a project root to its configured target.

    A run resolves candidates, maps them to remote addresses, provisions
    structured objects and transfers bytes. Per-file problems end up in
    the run's outcome log; only configuration and resolution problems are
    raised to the caller.

    At most one run per target is active at a time. A second request for
    a busy target is rejected with ``RunInProgressError``.

    Examples:
        >>> engine = DeploymentEngine(registry, GitVersionControl(), LocalTransport())
        >>> run = engine.deploy(Path("/src/project"), ChangeSelection.STAGED)
        >>> print(run.summary())
    """

    def __init__(
        self,
        registry: TargetRegistry,
        version_control: VersionControl,
        transport: Transport,
        commands: Optional[CommandRunner] = None,
        writer: Optional[ContentWriter] = None,
        sink: Optional[ReportingSink] = None,
        concurrency: Optional[int] = None,
        status_callback: Optional[StatusCallback] = None,
    ):
        """Initialize deployment engine.

        Args:
            registry: Target registry
            version_control: Supplier of working/staged changes
            transport: Byte transport to the host
            commands: Command runner (required for structured targets)
            writer: Member content writer (defaults to MemberContentWriter)
            sink: Receives the outcome log and progress messages
            concurrency: Parallel transfers for free-form targets
            status_callback: Called with the run on every status change
        """
        self.registry = registry
        self.resolver = ChangeSetResolver(version_control)
        self.transport = transport
        self.commands = commands
        if writer is None and commands is not None:
            writer = MemberContentWriter(transport, commands, config.remote_tmp_dir)
        self.writer = writer
        self.sink: ReportingSink = sink or NullSink()
        self.concurrency = concurrency or config.concurrency
        self.status_callback = status_callback

        self._lock = threading.Lock()
        self._active: dict[str, DeploymentRun] = {}

    def active_run(
        self, target: Union[DeploymentTarget, str]
    ) -> Optional[DeploymentRun]:
        """The in-flight run for a target (or target key), if any."""
        key = target.key if isinstance(target, DeploymentTarget) else target
        with self._lock:
            return self._active.get(key)

    def _acquire(self, run: DeploymentRun) -> None:
        with self._lock:
            if run.target.key in self._active:
                raise RunInProgressError(run.target.address)
            self._active[run.target.key] = run

    def _release(self, run: DeploymentRun) -> None:
        with self._lock:
            if self._active.get(run.target.key) is run:
                del self._active[run.target.key]

    def _set_status(self, run: DeploymentRun, status: RunStatus) -> None:
        if run.status is status:
            return
        logger.debug(
            f"Run for {run.target.address}: {run.status.value} -> {status.value}"
        )
        run.status = status
        if self.status_callback is not None:
            self.status_callback(run)

    def _record(self, run: DeploymentRun, outcome: TransferOutcome) -> None:
        run.record(outcome)
        self.sink.append_line(outcome.log_line())

    def target_for(self, project_root: Path) -> DeploymentTarget:
        """Look up and validate the target of a project root.

        Raises:
            NoTargetConfiguredError: If the root has no target
            InvalidTargetError: If the target cannot be deployed to
        """
        target = self.registry.get(project_root)
        if target is None:
            raise NoTargetConfiguredError(str(project_root))
        target.validate()
        if not target.is_free_form and (self.commands is None or self.writer is None):
            raise InvalidTargetError(
                f"Library target {target.address} requires a command runner"
            )
        return target

    def deploy(
        self,
        project_root: Path,
        selection: ChangeSelection,
        extra_ignore: Optional[list[str]] = None,
    ) -> DeploymentRun:
        """Deploy ``project_root`` to its configured target.

        Args:
            project_root: Local project root
            selection: Which files to deploy
            extra_ignore: Additional ignore patterns for this run

        Returns:
            The finished DeploymentRun

        Raises:
            NoTargetConfiguredError: If the root has no target
            InvalidTargetError: If the target cannot be deployed to
            NoRepositoryForRootError: If working/staged changes are
                requested and the root is not a repository root
            RunInProgressError: If the target already has an active run
        """
        root = Path(project_root).expanduser().resolve()
        target = self.target_for(root)
        run = DeploymentRun(target=target, selection=selection)

        self._acquire(run)
        try:
            self._execute(run, root, extra_ignore)
        finally:
            self._release(run)
        return run

    def _execute(
        self, run: DeploymentRun, root: Path, extra_ignore: Optional[list[str]]
    ) -> None:
        start_time = time.time()
        target = run.target
        selection = run.selection

        # Step 1: Resolve candidates
        self._set_status(run, RunStatus.RESOLVING)
        ignore_rules = IgnoreRuleSet.for_project(root, extra_ignore)
        try:
            candidates = self.resolver.resolve(root, selection, ignore_rules)
        except Exception as e:
            run.error = str(e)
            self._set_status(run, RunStatus.FAILED)
            raise

        if not candidates:
            run.no_changes = True
            self.sink.append_warning(f"No {selection.value} changes to deploy.")
            self._set_status(run, RunStatus.SUCCEEDED)
            return

        run.candidates = candidates
        self.sink.report_progress(
            f"Deploying {selection.value} changes ({len(candidates)}) "
            f"to {target.address}"
        )

        # Step 2: Map to remote addresses
        self._set_status(run, RunStatus.MAPPING)
        free_form: list[tuple] = []
        structured: list[tuple] = []
        for candidate in candidates:
            address = map_candidate(candidate, target)
            if isinstance(address, MappingSkip):
                self._record(run, TransferOutcome.skipped(candidate, address))
            elif isinstance(address, StructuredAddress):
                structured.append((candidate, address))
            elif isinstance(address, FreeFormAddress):
                free_form.append((candidate, address))

        # Step 3: Provision and transfer
        executor = TransferExecutor(
            self.transport,
            writer=self.writer,
            concurrency=self.concurrency,
            on_item_complete=lambda outcome: self._record(run, outcome),
            on_progress=self.sink.report_progress,
        )
        try:
            if target.is_free_form:
                self._set_status(run, RunStatus.TRANSFERRING)
                if selection is ChangeSelection.FULL:
                    executor.transfer_tree(
                        root,
                        target.address,
                        [candidate for candidate, _ in free_form],
                        ignore_rules,
                    )
                else:
                    executor.transfer_many(free_form)
            elif structured:
                self._set_status(run, RunStatus.PROVISIONING)
                provisioner = ObjectProvisioner(self.commands)
                executor.transfer_structured(
                    structured,
                    provisioner,
                    stop_on_failure=selection is ChangeSelection.FULL,
                    on_stage=lambda status: self._set_status(run, status),
                )
        except Exception as e:
            logger.debug(f"Deployment to {target.address} aborted: {e}")
            run.error = str(e)
            self.sink.append_line(f"Deployment failed: {e}")
            reported = {o.candidate.relative_path for o in run.outcomes_snapshot()}
            for candidate, address in free_form + structured:
                if candidate.relative_path not in reported:
                    self._record(run, TransferOutcome.failed(candidate, address, e))

        # Step 4: Summarize
        elapsed = time.time() - start_time
        logger.debug(
            f"Run for {target.address} finished in {elapsed:.2f}s: "
            f"{run.succeeded_count} succeeded, {run.failed_count} failed, "
            f"{run.skipped_count} skipped"
        )
        if run.is_successful:
            self.sink.append_line("Deployment finished.")
            self._set_status(run, RunStatus.SUCCEEDED)
        else:
            self.sink.append_line("Deployment failed.")
            self._set_status(run, RunStatus.FAILED)
