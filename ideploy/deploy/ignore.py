"""Gitignore-style ignore rules for deployments.

Rules are evaluated against paths relative to the project root, always
with forward slashes, and matching is case-insensitive. Supported syntax:

* ``#`` comments and blank lines
* ``*``, ``?`` and ``[...]`` wildcards within one path segment
* ``**`` spanning any number of segments
* ``!`` negation (the last matching rule wins)
* leading ``/`` or an inner ``/`` anchors the pattern to the root
* trailing ``/`` matches directories only

As with git, a file inside an ignored directory cannot be re-included.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".gitignore"

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (".git",)
"""Rules every deployment starts with"""


def _segment_to_regex(segment: str) -> str:
    """Translate one glob segment (no slashes) to a regex fragment."""
    out: list[str] = []
    i = 0
    n = len(segment)
    while i < n:
        c = segment[i]
        if c == "\\" and i + 1 < n:
            out.append(re.escape(segment[i + 1]))
            i += 2
            continue
        if c == "*":
            # Runs of * inside a segment behave like a single *
            while i + 1 < n and segment[i + 1] == "*":
                i += 1
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            start = i + 1
            if segment[start : start + 1] in ("!", "^"):
                start += 1
            if segment[start : start + 1] == "]":
                start += 1
            j = segment.find("]", start)
            if j == -1:
                out.append(re.escape(c))
            else:
                content = segment[i + 1 : j]
                negate = content[:1] in ("!", "^")
                if negate:
                    content = content[1:]
                content = content.replace("\\", "\\\\")
                out.append(f"[{'^' if negate else ''}{content}]")
                i = j
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


def _trim_trailing_spaces(line: str) -> str:
    """Strip trailing spaces unless they are escaped with a backslash."""
    stripped = line.rstrip(" ")
    if stripped.endswith("\\") and len(stripped) < len(line):
        return stripped[:-1] + " "
    return stripped


@dataclass(frozen=True)
class IgnoreRule:
    """A single parsed ignore pattern."""

    pattern: str
    """Original pattern text"""

    negated: bool = False
    """Whether the rule re-includes matching paths"""

    dir_only: bool = False
    """Whether the rule only matches directories"""

    anchored: bool = False
    """Whether the rule only matches relative to the project root"""

    regex: re.Pattern = field(default=re.compile(""), compare=False, repr=False)

    @classmethod
    def parse(cls, line: str) -> Optional["IgnoreRule"]:
        """Parse one line of an ignore file.

        Returns:
            IgnoreRule, or None for blank lines and comments
        """
        text = _trim_trailing_spaces(line.rstrip("\r\n"))
        if not text or text.startswith("#"):
            return None

        negated = False
        if text.startswith("!"):
            negated = True
            text = text[1:]
        elif text.startswith("\\#") or text.startswith("\\!"):
            text = text[1:]

        dir_only = text.endswith("/")
        body = text.rstrip("/")
        anchored = body.startswith("/") or "/" in body.strip("/")
        body = body.lstrip("/")
        if not body:
            return None

        segments = body.split("/")
        parts: list[str] = [] if anchored else ["(?:.*/)?"]
        for index, segment in enumerate(segments):
            last = index == len(segments) - 1
            if segment == "**":
                parts.append(".*" if last else "(?:.*/)?")
            else:
                parts.append(_segment_to_regex(segment))
                if not last:
                    parts.append("/")

        return cls(
            pattern=line.strip(),
            negated=negated,
            dir_only=dir_only,
            anchored=anchored,
            regex=re.compile("".join(parts), re.IGNORECASE | re.DOTALL),
        )

    def matches(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check whether this rule matches a root-relative path."""
        if self.dir_only and not is_dir:
            return False
        return self.regex.fullmatch(relative_path) is not None


class IgnoreRuleSet:
    """Ordered, immutable collection of ignore rules.

    Examples:
        >>> rules = IgnoreRuleSet.from_patterns(["*.tmp", "node_modules/"])
        >>> rules.is_ignored("build/out.TMP")
        True
        >>> rules.is_ignored("node_modules/pkg/index.js")
        True
    """

    def __init__(self, rules: Iterable[IgnoreRule] = ()):
        self._rules: tuple[IgnoreRule, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[IgnoreRule, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> "IgnoreRuleSet":
        rules = []
        for line in patterns:
            rule = IgnoreRule.parse(line)
            if rule is not None:
                rules.append(rule)
        return cls(rules)

    @classmethod
    def default(cls) -> "IgnoreRuleSet":
        """Rule set with only the built-in rules."""
        return cls.from_patterns(DEFAULT_IGNORE_PATTERNS)

    @classmethod
    def for_project(
        cls, project_root: Path, extra_patterns: Optional[list[str]] = None
    ) -> "IgnoreRuleSet":
        """Build the rule set for a deployment of ``project_root``.

        Starts with the built-in rules, then the project's ``.gitignore``
        (if present), then any extra patterns.
        """
        rules = cls.default().with_patterns(
            load_ignore_file(project_root / IGNORE_FILE_NAME)
        )
        if extra_patterns:
            rules = rules.with_patterns(extra_patterns)
        return rules

    def with_patterns(self, patterns: Iterable[str]) -> "IgnoreRuleSet":
        """Return a new rule set with additional patterns appended."""
        return IgnoreRuleSet(self._rules + IgnoreRuleSet.from_patterns(patterns).rules)

    def _evaluate(self, relative_path: str, is_dir: bool) -> bool:
        ignored = False
        for rule in self._rules:
            if rule.matches(relative_path, is_dir=is_dir):
                ignored = not rule.negated
        return ignored

    def is_ignored(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check whether a root-relative path is excluded.

        Args:
            relative_path: Path relative to the project root
            is_dir: Whether the path is a directory
        """
        path = relative_path.replace("\\", "/").strip("/")
        if not path:
            return False

        parts = path.split("/")
        for end in range(1, len(parts)):
            if self._evaluate("/".join(parts[:end]), is_dir=True):
                return True
        return self._evaluate(path, is_dir=is_dir)


def load_ignore_file(path: Path) -> list[str]:
    """Read pattern lines from an ignore file.

    A missing or unreadable file yields no patterns.
    """
    if not path.is_file():
        return []
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning(f"Failed to read ignore file {path}: {e}")
        return []
    lines = content.replace("\r", "").split("\n")
    logger.debug(f"Loaded {len(lines)} line(s) from {path}")
    return lines
