"""Version control collaborator for working and staged change lists."""

import logging
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from ..exceptions import NoRepositoryForRootError
from .modes import ChangeSelection

logger = logging.getLogger(__name__)


class VersionControl(Protocol):
    """Supplies changed files for a repository rooted at a project root."""

    def list_changes(self, repo_root: Path, mode: ChangeSelection) -> list[Path]:
        """Return absolute paths of changed files.

        Raises:
            NoRepositoryForRootError: If no repository is rooted at repo_root
        """
        ...


class GitVersionControl:
    """``VersionControl`` backed by the git command line.

    Working changes are unstaged modifications plus untracked files;
    staged changes are the index. Deleted paths are left out since there
    is nothing to upload for them.
    """

    def __init__(self, git_executable: str = "git"):
        self.git_executable = git_executable

    def _git(self, repo_root: Path, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.git_executable, *args],
            cwd=repo_root,
            capture_output=True,
            text=True,
        )

    def repository_root(self, path: Path) -> Optional[Path]:
        """Top level of the repository containing ``path``, if any."""
        try:
            result = self._git(path, "rev-parse", "--show-toplevel")
        except (FileNotFoundError, NotADirectoryError) as e:
            logger.debug(f"git unavailable for {path}: {e}")
            return None
        if result.returncode != 0:
            return None
        return Path(result.stdout.strip()).resolve()

    def _names(self, repo_root: Path, *args: str) -> list[str]:
        result = self._git(repo_root, *args)
        if result.returncode != 0:
            logger.warning(f"git {' '.join(args)} failed: {result.stderr.strip()}")
            return []
        return [name for name in result.stdout.split("\0") if name]

    def list_changes(self, repo_root: Path, mode: ChangeSelection) -> list[Path]:
        root = repo_root.resolve()
        top_level = self.repository_root(root)
        if top_level != root:
            raise NoRepositoryForRootError(str(repo_root))

        if mode is ChangeSelection.STAGED:
            names = self._names(
                root, "diff", "--cached", "--name-only", "--diff-filter=d", "-z"
            )
        elif mode is ChangeSelection.WORKING:
            names = self._names(root, "diff", "--name-only", "--diff-filter=d", "-z")
            names.extend(
                self._names(root, "ls-files", "--others", "--exclude-standard", "-z")
            )
        else:
            raise ValueError(f"{mode.value} changes are not tracked by git")

        logger.debug(f"git reported {len(names)} {mode.value} change(s) in {root}")
        return [root / name for name in names]
