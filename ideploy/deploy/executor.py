"""Transfer of mapped candidates to the host."""

import logging
import os
import queue
import time
from pathlib import Path
from typing import Callable, Optional

from ..config import config
from .ignore import IgnoreRuleSet
from .mapper import (
    FreeFormAddress,
    RemoteAddress,
    StructuredAddress,
    map_free_form,
)
from .modes import RunStatus, TransferStatus
from .provisioner import ObjectProvisioner
from .run import TransferOutcome
from .scanner import CandidateFile
from .transport import ContentWriter, Transport

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[TransferOutcome], None]
ProgressCallback = Callable[[str], None]
StageCallback = Callable[[RunStatus], None]


class TransferExecutor:
    """Writes candidate files to their remote addresses.

    Free-form transfers fan out through the transport with a fixed
    concurrency limit. Structured transfers run one file at a time, each
    provisioned before it is written.

    ``on_item_complete`` is invoked once per outcome as soon as it is
    known; with a concurrent transport it may be called from worker
    threads.
    """

    def __init__(
        self,
        transport: Transport,
        writer: Optional[ContentWriter] = None,
        concurrency: Optional[int] = None,
        on_item_complete: Optional[OutcomeCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """Initialize transfer executor.

        Args:
            transport: Byte transport to the host
            writer: Member content writer (required for structured targets)
            concurrency: Parallel transfers for free-form targets
                (default: ``config.concurrency``)
            on_item_complete: Called with each TransferOutcome
            on_progress: Called with human-readable progress messages
        """
        self.transport = transport
        self.writer = writer
        self.concurrency = concurrency or config.concurrency
        self.on_item_complete = on_item_complete
        self.on_progress = on_progress

    def _progress(self, message: str) -> None:
        if self.on_progress is not None:
            self.on_progress(message)

    def _emit(self, outcome: TransferOutcome) -> TransferOutcome:
        relative = outcome.candidate.relative_path
        if outcome.status is TransferStatus.FAILED:
            self._progress(f"Failed to deploy {relative}")
        elif outcome.status is TransferStatus.SKIPPED:
            self._progress(f"Skipped {relative}")
        else:
            self._progress(f"Deployed {relative}")
        if self.on_item_complete is not None:
            self.on_item_complete(outcome)
        return outcome

    def transfer(
        self,
        candidate: CandidateFile,
        address: RemoteAddress,
        provisioner: Optional[ObjectProvisioner] = None,
    ) -> TransferOutcome:
        """Transfer a single file and report its outcome.

        For structured addresses the member is provisioned first when a
        provisioner is given. Errors are captured in the outcome.
        """
        start = time.time()
        try:
            if isinstance(address, StructuredAddress):
                if self.writer is None:
                    raise ValueError(
                        "No content writer configured for structured targets"
                    )
                if provisioner is not None:
                    provisioner.ensure(address)
                content = candidate.local_path.read_bytes()
                self.writer.upload_member_content(
                    address.library, address.container, address.member, content
                )
            else:
                content = candidate.local_path.read_bytes()
                self.transport.put_file(content, address.absolute_path)
        except Exception as e:
            logger.debug(f"Failed {candidate.relative_path} -> {address}: {e}")
            return TransferOutcome.failed(candidate, address, e)

        logger.debug(
            f"Transferred {candidate.relative_path} in {time.time() - start:.2f}s"
        )
        return TransferOutcome.success(candidate, address)

    def _collect(
        self,
        results: "queue.Queue[TransferOutcome]",
        expected: dict[str, tuple[CandidateFile, FreeFormAddress]],
        transport_error: Optional[BaseException],
    ) -> list[TransferOutcome]:
        """Drain the result queue; anything unreported is marked failed."""
        outcomes: list[TransferOutcome] = []
        reported: set[str] = set()
        while True:
            try:
                outcome = results.get_nowait()
            except queue.Empty:
                break
            outcomes.append(outcome)
            reported.add(str(outcome.candidate.local_path))

        for local_key, (candidate, address) in expected.items():
            if local_key in reported:
                continue
            reason = transport_error or "file was not transferred"
            outcomes.append(self._emit(TransferOutcome.failed(candidate, address, reason)))
        return outcomes

    def _tick_handler(
        self,
        results: "queue.Queue[TransferOutcome]",
        expected: dict[str, tuple[CandidateFile, FreeFormAddress]],
    ) -> Callable[[Path, str, Optional[BaseException]], None]:
        def tick(local_path: Path, remote_path: str, error: Optional[BaseException]) -> None:
            entry = expected.get(str(local_path))
            if entry is None:
                logger.debug(f"Transport reported unexpected file {local_path}")
                return
            candidate, _ = entry
            address = FreeFormAddress(remote_path)
            if error is not None:
                outcome = TransferOutcome.failed(candidate, address, error)
            else:
                outcome = TransferOutcome.success(candidate, address)
            results.put(self._emit(outcome))

        return tick

    def transfer_many(
        self, mapped: list[tuple[CandidateFile, FreeFormAddress]]
    ) -> list[TransferOutcome]:
        """Free-form change-set transfer through the transport's bulk put.

        Intermediate directories are created by the transport as a side
        effect of writing each path.

        Returns:
            Outcomes in completion order
        """
        if not mapped:
            return []

        expected = {str(c.local_path): (c, a) for c, a in mapped}
        results: "queue.Queue[TransferOutcome]" = queue.Queue()
        uploads = [(c.local_path, a.absolute_path) for c, a in mapped]

        logger.debug(
            f"Uploading {len(uploads)} file(s) with concurrency {self.concurrency}"
        )
        transport_error: Optional[BaseException] = None
        try:
            self.transport.put_many(
                uploads,
                concurrency=self.concurrency,
                tick=self._tick_handler(results, expected),
            )
        except Exception as e:
            logger.debug(f"Bulk upload failed: {e}")
            transport_error = e

        return self._collect(results, expected, transport_error)

    def transfer_tree(
        self,
        project_root: Path,
        target_root: str,
        candidates: list[CandidateFile],
        ignore_rules: IgnoreRuleSet,
    ) -> list[TransferOutcome]:
        """Free-form full-tree transfer through the transport's tree copy.

        The transport walks the tree itself; each item is re-checked
        against the ignore rules and the resolved candidate set.
        """
        expected = {
            str(c.local_path): (c, map_free_form(c, target_root)) for c in candidates
        }
        if not expected:
            return []
        results: "queue.Queue[TransferOutcome]" = queue.Queue()

        def validate(local_path: Path, remote_path: str) -> bool:
            relative = Path(os.path.relpath(local_path, project_root)).as_posix()
            if Path(local_path).is_dir():
                return not ignore_rules.is_ignored(relative, is_dir=True)
            if str(local_path) not in expected:
                return False
            return not ignore_rules.is_ignored(relative)

        transport_error: Optional[BaseException] = None
        try:
            self.transport.put_tree(
                project_root,
                target_root,
                recursive=True,
                concurrency=self.concurrency,
                validate=validate,
                tick=self._tick_handler(results, expected),
            )
        except Exception as e:
            logger.debug(f"Tree upload failed: {e}")
            transport_error = e

        return self._collect(results, expected, transport_error)

    def transfer_structured(
        self,
        mapped: list[tuple[CandidateFile, StructuredAddress]],
        provisioner: ObjectProvisioner,
        stop_on_failure: bool = False,
        on_stage: Optional[StageCallback] = None,
    ) -> list[TransferOutcome]:
        """Sequential provision-then-write for structured targets.

        Args:
            mapped: Candidates with their structured addresses
            provisioner: The run's provisioner
            stop_on_failure: Stop at the first write failure; remaining
                files are recorded as skipped
            on_stage: Called with PROVISIONING/TRANSFERRING per file

        Returns:
            Outcomes in input order
        """
        outcomes: list[TransferOutcome] = []
        aborted_by: Optional[str] = None
        total = len(mapped)

        for index, (candidate, address) in enumerate(mapped):
            if aborted_by is not None:
                outcomes.append(
                    self._emit(
                        TransferOutcome.skipped(
                            candidate,
                            f"not attempted after failure of {aborted_by}",
                            address,
                        )
                    )
                )
                continue

            self._progress(
                f"Deploying {candidate.relative_path} ({index + 1}/{total})"
            )
            if on_stage is not None:
                on_stage(RunStatus.PROVISIONING)
            provisioner.ensure(address)

            if on_stage is not None:
                on_stage(RunStatus.TRANSFERRING)
            outcome = self._emit(self.transfer(candidate, address))
            outcomes.append(outcome)

            if stop_on_failure and outcome.status is TransferStatus.FAILED:
                aborted_by = candidate.relative_path

        return outcomes
