"""Mapping of local relative paths onto remote addresses.

Free-form targets keep the local tree verbatim under the target
directory. Structured targets can only hold ``SOURCEFILE/MEMBER.TYPE``
shaped paths: a two-level namespace where both names are at most ten
characters and the container starts with a letter. Anything else is
skipped, not failed.
"""

import posixpath
import re
from dataclasses import dataclass
from typing import Union

from .registry import DeploymentTarget
from .scanner import CandidateFile

CONTAINER_NAME_MAX_LENGTH = 10
MEMBER_NAME_MAX_LENGTH = 10
SOURCE_TYPE_MAX_LENGTH = 10

_LEADING_LETTER_RE = re.compile(r"^[A-Za-z]")


@dataclass(frozen=True)
class FreeFormAddress:
    """A hierarchical (IFS) path."""

    absolute_path: str

    def __str__(self) -> str:
        return self.absolute_path


@dataclass(frozen=True)
class StructuredAddress:
    """A member of a source physical file in a library."""

    library: str
    container: str
    member: str
    source_type: str

    def __str__(self) -> str:
        return f"{self.library}/{self.container}/{self.member}"


RemoteAddress = Union[FreeFormAddress, StructuredAddress]


@dataclass(frozen=True)
class MappingSkip:
    """A candidate that cannot be represented on the target."""

    reason: str


def map_free_form(candidate: CandidateFile, target_root: str) -> FreeFormAddress:
    """Join the relative path onto the target directory."""
    return FreeFormAddress(posixpath.join(target_root, candidate.relative_path))


def map_structured(
    candidate: CandidateFile, library: str
) -> Union[StructuredAddress, MappingSkip]:
    """Map ``container/name.ext`` onto ``LIBRARY/CONTAINER(NAME)`` type ``EXT``."""
    parts = candidate.relative_path.split("/")
    if len(parts) != 2:
        return MappingSkip(
            f"path has {len(parts)} segment(s), expected source-file/member.type"
        )

    container, file_name = parts
    if not _LEADING_LETTER_RE.match(container):
        return MappingSkip(f"source file name {container} must start with a letter")
    if len(container) > CONTAINER_NAME_MAX_LENGTH:
        return MappingSkip(
            f"source file name {container} is longer than "
            f"{CONTAINER_NAME_MAX_LENGTH} characters"
        )

    member, extension = posixpath.splitext(file_name)
    source_type = extension[1:]
    if not source_type:
        return MappingSkip(f"{file_name} has no extension to use as source type")
    if len(member) > MEMBER_NAME_MAX_LENGTH:
        return MappingSkip(
            f"member name {member} is longer than "
            f"{MEMBER_NAME_MAX_LENGTH} characters"
        )
    if len(source_type) > SOURCE_TYPE_MAX_LENGTH:
        return MappingSkip(
            f"source type {source_type} is longer than "
            f"{SOURCE_TYPE_MAX_LENGTH} characters"
        )

    return StructuredAddress(
        library=library.upper(),
        container=container.upper(),
        member=member.upper(),
        source_type=source_type.upper(),
    )


def map_candidate(
    candidate: CandidateFile, target: DeploymentTarget
) -> Union[RemoteAddress, MappingSkip]:
    """Translate a candidate into a remote address for ``target``.

    Returns:
        FreeFormAddress or StructuredAddress, or MappingSkip with the reason
        the candidate cannot be deployed to a structured target
    """
    if target.is_free_form:
        return map_free_form(candidate, target.address)
    return map_structured(candidate, target.address)
