"""Deployment run state and per-file outcomes."""

import threading
from dataclasses import dataclass, field
from typing import Optional, Union

from .mapper import MappingSkip, RemoteAddress
from .modes import ChangeSelection, RunStatus, TransferStatus
from .registry import DeploymentTarget
from .scanner import CandidateFile


@dataclass(frozen=True)
class TransferOutcome:
    """Result of deploying one candidate file."""

    candidate: CandidateFile
    remote_address: Optional[RemoteAddress]
    status: TransferStatus
    detail: str = ""

    @classmethod
    def success(cls, candidate: CandidateFile, address: RemoteAddress) -> "TransferOutcome":
        return cls(candidate, address, TransferStatus.SUCCESS)

    @classmethod
    def failed(
        cls,
        candidate: CandidateFile,
        address: Optional[RemoteAddress],
        error: Union[BaseException, str],
    ) -> "TransferOutcome":
        return cls(candidate, address, TransferStatus.FAILED, str(error))

    @classmethod
    def skipped(
        cls,
        candidate: CandidateFile,
        reason: Union[MappingSkip, str],
        address: Optional[RemoteAddress] = None,
    ) -> "TransferOutcome":
        detail = reason.reason if isinstance(reason, MappingSkip) else reason
        return cls(candidate, address, TransferStatus.SKIPPED, detail)

    def log_line(self) -> str:
        """Format this outcome for the deployment log."""
        relative = self.candidate.relative_path
        if self.status is TransferStatus.SUCCESS:
            return f"SUCCESS: {relative} -> {self.remote_address}"
        if self.status is TransferStatus.FAILED:
            return f"FAILED: {relative} -> {self.remote_address}: {self.detail}"
        return f"SKIPPED: {relative} ({self.detail})"


@dataclass
class DeploymentRun:
    """One deployment of a project root to its target.

    The status is written by the engine and may be read from any thread at
    any time.
    """

    target: DeploymentTarget
    selection: ChangeSelection
    status: RunStatus = RunStatus.IDLE
    candidates: list[CandidateFile] = field(default_factory=list)
    outcomes: list[TransferOutcome] = field(default_factory=list)
    no_changes: bool = False
    error: Optional[str] = None
    """Run-level error detail (for example a failed tree transfer)"""

    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def record(self, outcome: TransferOutcome) -> None:
        with self._lock:
            self.outcomes.append(outcome)

    def outcomes_snapshot(self) -> list[TransferOutcome]:
        with self._lock:
            return list(self.outcomes)

    def _count(self, status: TransferStatus) -> int:
        return sum(1 for o in self.outcomes_snapshot() if o.status is status)

    @property
    def succeeded_count(self) -> int:
        return self._count(TransferStatus.SUCCESS)

    @property
    def failed_count(self) -> int:
        return self._count(TransferStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return self._count(TransferStatus.SKIPPED)

    @property
    def is_successful(self) -> bool:
        """True iff every non-skipped outcome succeeded."""
        return self.error is None and self.failed_count == 0

    def summary(self) -> dict:
        return {
            "target": self.target.address,
            "mode": self.target.mode.value,
            "selection": self.selection.value,
            "status": self.status.value,
            "no_changes": self.no_changes,
            "succeeded": self.succeeded_count,
            "failed": self.failed_count,
            "skipped": self.skipped_count,
        }
