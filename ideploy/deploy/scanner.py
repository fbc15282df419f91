"""Change-set resolution: which local files take part in a deployment."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from .ignore import IgnoreRuleSet
from .modes import ChangeSelection
from .vcs import VersionControl

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateFile:
    """A local file considered for deployment."""

    local_path: Path
    """Absolute path to the file"""

    relative_path: str
    """Path relative to the project root (using forward slashes)"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "CandidateFile":
        """Create a CandidateFile from a path under ``base_path``.

        Args:
            file_path: Absolute path to the file
            base_path: Project root used for the relative path
        """
        # os.path.relpath tolerates paths that only differ by symlinks/case
        relative = Path(os.path.relpath(file_path, base_path)).as_posix()
        return cls(local_path=file_path, relative_path=relative)


def iter_full_tree(
    project_root: Path, ignore_rules: Optional[IgnoreRuleSet] = None
) -> Iterator[CandidateFile]:
    """Lazily walk ``project_root`` yielding files that are not ignored.

    Ignored directories are pruned without being descended into, so large
    excluded trees (``node_modules``, build output) cost nothing.

    Examples:
        >>> rules = IgnoreRuleSet.from_patterns(["*.tmp"])
        >>> for candidate in iter_full_tree(Path("/src/project"), rules):
        ...     print(candidate.relative_path)
    """
    rules = ignore_rules or IgnoreRuleSet.default()
    pending = [project_root]

    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except PermissionError:
            logger.warning(f"Permission denied: {directory}")
            continue

        subdirs = []
        for entry in entries:
            path = Path(entry.path)
            relative = path.relative_to(project_root).as_posix()
            is_dir = entry.is_dir(follow_symlinks=False)

            if rules.is_ignored(relative, is_dir=is_dir):
                logger.debug(f"Ignoring (from rules): {relative}")
                continue

            if is_dir:
                subdirs.append(path)
            elif entry.is_file():
                yield CandidateFile(local_path=path, relative_path=relative)

        # Reversed so directories are visited in name order
        pending.extend(reversed(subdirs))


class ChangeSetResolver:
    """Produces the candidate files for a deployment run."""

    def __init__(self, version_control: VersionControl):
        """Initialize resolver.

        Args:
            version_control: Collaborator supplying working/staged changes
        """
        self.version_control = version_control

    def iter_candidates(
        self,
        project_root: Path,
        selection: ChangeSelection,
        ignore_rules: Optional[IgnoreRuleSet] = None,
    ) -> Iterator[CandidateFile]:
        """Yield candidates for ``selection`` without materializing them.

        Raises:
            NoRepositoryForRootError: For working/staged selections when no
                repository is rooted at ``project_root``
        """
        if not selection.uses_version_control:
            yield from iter_full_tree(project_root, ignore_rules)
            return

        changes = self.version_control.list_changes(project_root, selection)
        for changed in changes:
            yield CandidateFile.from_path(Path(changed), project_root)

    def resolve(
        self,
        project_root: Path,
        selection: ChangeSelection,
        ignore_rules: Optional[IgnoreRuleSet] = None,
    ) -> list[CandidateFile]:
        """Resolve the candidate list for a run.

        The same relative path never appears twice. An empty list is the
        "no changes" condition, not an error.

        Args:
            project_root: Absolute project root
            selection: Which files to consider
            ignore_rules: Rules applied to full-tree selections

        Returns:
            List of CandidateFile objects
        """
        seen: set[str] = set()
        candidates: list[CandidateFile] = []
        for candidate in self.iter_candidates(project_root, selection, ignore_rules):
            if candidate.relative_path in seen:
                continue
            seen.add(candidate.relative_path)
            candidates.append(candidate)

        logger.debug(
            f"Resolved {len(candidates)} {selection.value} candidate(s) "
            f"under {project_root}"
        )
        return candidates
