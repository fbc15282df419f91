"""Enumerations describing deployment modes and states."""

from enum import Enum


class ChangeSelection(str, Enum):
    """Which local files are candidates for a deployment."""

    WORKING = "working"
    """Unstaged working tree changes (including untracked files)"""

    STAGED = "staged"
    """Changes staged in the index"""

    FULL = "full"
    """Every file in the project tree, minus ignored paths"""

    @classmethod
    def from_string(cls, value: str) -> "ChangeSelection":
        """Parse a selection name.

        Accepts the enum values plus the aliases used by the original
        deployment prompt ("all", "working changes", "staged changes").

        Raises:
            ValueError: If the value is not a known selection
        """
        normalized = value.strip().lower().replace("_", " ")
        aliases = {
            "all": cls.FULL,
            "working changes": cls.WORKING,
            "staged changes": cls.STAGED,
        }
        if normalized in aliases:
            return aliases[normalized]
        for selection in cls:
            if selection.value == normalized:
                return selection
        valid = ", ".join(s.value for s in cls)
        raise ValueError(f"Invalid change selection: {value}. Valid: {valid}")

    @property
    def uses_version_control(self) -> bool:
        return self is not ChangeSelection.FULL


class AddressingMode(str, Enum):
    """How a target addresses stored objects on the host."""

    FREE_FORM = "free-form"
    """Hierarchical file system (IFS) paths"""

    STRUCTURED = "structured"
    """Library / source file / member (QSYS) names"""

    @classmethod
    def infer(cls, address: str) -> "AddressingMode":
        """Free-form targets are absolute paths; anything else is a library."""
        if address.startswith("/"):
            return cls.FREE_FORM
        return cls.STRUCTURED


class RunStatus(str, Enum):
    """Lifecycle of a deployment run."""

    IDLE = "idle"
    RESOLVING = "resolving"
    MAPPING = "mapping"
    PROVISIONING = "provisioning"
    TRANSFERRING = "transferring"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED)


class TransferStatus(str, Enum):
    """Per-file result of a deployment."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
