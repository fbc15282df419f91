"""Idempotent creation of source files and members before a write."""

import logging

from .mapper import StructuredAddress
from .transport import CommandRunner

logger = logging.getLogger(__name__)

SOURCE_FILE_RECORD_LENGTH = 112


class ObjectProvisioner:
    """Ensures the source file and member for an address exist.

    The host offers no "create if absent" command, so both steps create
    optimistically and treat any failure as "already exists". A real
    problem (authority, missing library) shows up when the member is
    written.

    One provisioner belongs to one deployment run: the set of source files
    already created is remembered only for that run.
    """

    def __init__(self, commands: CommandRunner):
        """Initialize provisioner.

        Args:
            commands: Runner for CRTSRCPF and ADDPFM
        """
        self.commands = commands
        self.provisioned_containers: set[tuple[str, str]] = set()

    def _run_tolerant(self, command: str) -> bool:
        try:
            result = self.commands.run(command)
        except Exception as e:
            logger.debug(f"Ignoring failure of {command}: {e}")
            return False
        if not result.ok:
            logger.debug(
                f"Ignoring exit code {result.exit_code} of {command}: "
                f"{result.stderr.strip()}"
            )
            return False
        return True

    def ensure_container(self, library: str, container: str) -> bool:
        """Create the source file once per run.

        Returns:
            True if the create command succeeded on this call
        """
        key = (library, container)
        if key in self.provisioned_containers:
            return True
        self.provisioned_containers.add(key)
        return self._run_tolerant(
            f"CRTSRCPF FILE({library}/{container}) "
            f"RCDLEN({SOURCE_FILE_RECORD_LENGTH})"
        )

    def ensure_member(self, address: StructuredAddress) -> bool:
        """Create the member. Attempted for every file written."""
        return self._run_tolerant(
            f"ADDPFM FILE({address.library}/{address.container}) "
            f"MBR({address.member}) SRCTYPE({address.source_type})"
        )

    def ensure(self, address: StructuredAddress) -> bool:
        """Ensure container and member exist.

        Never raises and never fails the run; the return value only says
        whether both create commands reported success.
        """
        container_ok = self.ensure_container(address.library, address.container)
        member_ok = self.ensure_member(address)
        return container_ok and member_ok
