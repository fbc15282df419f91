"""Collaborators used to reach the host.

The deployment core only sequences calls through these interfaces:

* ``Transport`` writes bytes to remote paths (single, bulk, tree)
* ``CommandRunner`` executes a CL command on the host
* ``ContentWriter`` replaces the content of a source member
* ``ReportingSink`` receives log lines and progress messages

``LocalTransport`` and ``SystemCommandRunner`` implement the first two for
a deployment run on the host itself or against a mounted IFS share.
"""

import logging
import os
import posixpath
import shutil
import subprocess
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

from ..exceptions import DeployError, RemoteCommandError, TransferError

logger = logging.getLogger(__name__)

TickCallback = Callable[[Path, str, Optional[BaseException]], None]
"""Called per item with (local_path, remote_path, error or None)"""

ValidateCallback = Callable[[Path, str], bool]
"""Called per file and directory; False excludes it from the transfer"""


@dataclass
class CommandResult:
    """Result of a command run on the host."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Transport(Protocol):
    """Byte transfer to the host file system."""

    def put_file(self, content: bytes, remote_path: str) -> None: ...

    def put_many(
        self,
        uploads: list[tuple[Path, str]],
        concurrency: int = 5,
        tick: Optional[TickCallback] = None,
    ) -> bool: ...

    def put_tree(
        self,
        local_root: Path,
        remote_root: str,
        recursive: bool = True,
        concurrency: int = 5,
        validate: Optional[ValidateCallback] = None,
        tick: Optional[TickCallback] = None,
    ) -> bool: ...


class CommandRunner(Protocol):
    """Runs a command on the host."""

    def run(self, command: str) -> CommandResult: ...


class ContentWriter(Protocol):
    """Writes source member content."""

    def upload_member_content(
        self, library: str, source_file: str, member: str, content: bytes
    ) -> None: ...


class ReportingSink(Protocol):
    """Fire-and-forget output for a deployment."""

    def append_line(self, text: str) -> None: ...

    def append_warning(self, text: str) -> None: ...

    def report_progress(self, message: str) -> None: ...


class NullSink:
    """ReportingSink that discards everything."""

    def append_line(self, text: str) -> None:
        pass

    def append_warning(self, text: str) -> None:
        pass

    def report_progress(self, message: str) -> None:
        pass


class LocalTransport:
    """Transport writing to a locally reachable file system.

    Args:
        mount_root: Local directory where the host's root is mounted.
            When None, remote paths are used as-is (running on the host).
    """

    def __init__(self, mount_root: Optional[Path] = None):
        self.mount_root = mount_root

    def local_path_for(self, remote_path: str) -> Path:
        """Translate a remote absolute path into the local file system."""
        if self.mount_root is None:
            return Path(remote_path)
        return self.mount_root / remote_path.lstrip("/")

    def put_file(self, content: bytes, remote_path: str) -> None:
        destination = self.local_path_for(remote_path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(content)
        except OSError as e:
            raise TransferError(f"Failed to write {remote_path}: {e}") from e

    def _copy(self, local_path: Path, remote_path: str) -> None:
        destination = self.local_path_for(remote_path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_path, destination)
        except OSError as e:
            raise TransferError(f"Failed to copy {local_path} to {remote_path}: {e}") from e

    def put_many(
        self,
        uploads: list[tuple[Path, str]],
        concurrency: int = 5,
        tick: Optional[TickCallback] = None,
    ) -> bool:
        """Copy files concurrently, creating parent directories as needed.

        Returns:
            True if every file was written
        """
        if not uploads:
            return True

        all_ok = True
        with ThreadPoolExecutor(max_workers=max(1, concurrency)) as executor:
            futures = {
                executor.submit(self._copy, local, remote): (local, remote)
                for local, remote in uploads
            }
            for future in as_completed(futures):
                local, remote = futures[future]
                error = future.exception()
                if error is not None:
                    all_ok = False
                    logger.debug(f"Failed {local} -> {remote}: {error}")
                if tick is not None:
                    tick(local, remote, error)
        return all_ok

    def put_tree(
        self,
        local_root: Path,
        remote_root: str,
        recursive: bool = True,
        concurrency: int = 5,
        validate: Optional[ValidateCallback] = None,
        tick: Optional[TickCallback] = None,
    ) -> bool:
        """Copy a directory tree, filtered by ``validate``."""
        uploads: list[tuple[Path, str]] = []
        for dirpath, dirnames, filenames in os.walk(local_root):
            current = Path(dirpath)
            relative_dir = current.relative_to(local_root).as_posix()
            remote_dir = (
                remote_root
                if relative_dir == "."
                else posixpath.join(remote_root, relative_dir)
            )

            kept_dirs = []
            for name in sorted(dirnames):
                remote = posixpath.join(remote_dir, name)
                if recursive and (validate is None or validate(current / name, remote)):
                    kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for name in sorted(filenames):
                remote = posixpath.join(remote_dir, name)
                if validate is None or validate(current / name, remote):
                    uploads.append((current / name, remote))

        logger.debug(f"Copying {len(uploads)} file(s) from {local_root} to {remote_root}")
        return self.put_many(uploads, concurrency=concurrency, tick=tick)


class SystemCommandRunner:
    """Runs CL commands through the host's ``system`` utility."""

    def __init__(self, executable: str = "system", timeout: Optional[float] = None):
        self.executable = executable
        self.timeout = timeout

    def run(self, command: str) -> CommandResult:
        logger.debug(f"Running: {command}")
        try:
            completed = subprocess.run(
                [self.executable, command],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise RemoteCommandError(command, f"Unable to run command: {e}") from e
        return CommandResult(
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )


class MemberContentWriter:
    """Replaces member content by staging a stream file and copying it in.

    Args:
        transport: Used to write the staged stream file
        commands: Used to run CPYFRMSTMF and clean up
        tmp_dir: Remote directory for staged files
    """

    def __init__(self, transport: Transport, commands: CommandRunner, tmp_dir: str = "/tmp"):
        self.transport = transport
        self.commands = commands
        self.tmp_dir = tmp_dir

    def upload_member_content(
        self, library: str, source_file: str, member: str, content: bytes
    ) -> None:
        staged = posixpath.join(self.tmp_dir, f"ideploy-{uuid.uuid4().hex}.src")
        member_path = f"/QSYS.LIB/{library}.LIB/{source_file}.FILE/{member}.MBR"
        command = (
            f"CPYFRMSTMF FROMSTMF('{staged}') TOMBR('{member_path}') "
            f"MBROPT(*REPLACE) STMFCCSID(1208)"
        )

        self.transport.put_file(content, staged)
        try:
            result = self.commands.run(command)
        finally:
            try:
                self.commands.run(f"RMVLNK OBJLNK('{staged}')")
            except DeployError as e:
                logger.debug(f"Could not remove staged file {staged}: {e}")

        if not result.ok:
            message = result.stderr.strip() or result.stdout.strip() or "copy failed"
            raise RemoteCommandError(command, message, exit_code=result.exit_code)
