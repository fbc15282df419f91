"""Deployment target registry.

Remembers, per local project root, where on the host that project is
deployed to. Targets are stored through a small key/value settings store
so the registry itself holds no state.
"""

import json
import logging
import posixpath
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from ..config import config
from ..exceptions import InvalidTargetError
from .modes import AddressingMode

logger = logging.getLogger(__name__)

DEPLOYMENT_KEY = "deployment"

LIBRARY_NAME_MAX_LENGTH = 10
_LIBRARY_NAME_RE = re.compile(r"^[A-Z$#@][A-Z0-9$#@_.]*$")


class SettingsStore(Protocol):
    """Durable key/value storage."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class MemorySettingsStore:
    """In-memory ``SettingsStore``, useful for scripting and tests."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class JsonSettingsStore:
    """``SettingsStore`` persisted as a JSON document.

    The file defaults to ``~/.config/ideploy/settings.json``.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path or config.settings_path
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load settings from {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Any:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        logger.debug(f"Saved setting {key!r} to {self.path}")


@dataclass(frozen=True)
class DeploymentTarget:
    """Where a project root is deployed to."""

    project_root: str
    """Absolute local project root"""

    address: str
    """IFS directory (free-form) or library name (structured)"""

    mode: AddressingMode
    """Addressing model, inferred from the address"""

    @classmethod
    def from_address(cls, project_root: str, address: str) -> "DeploymentTarget":
        address = address.strip()
        mode = AddressingMode.infer(address)
        if mode is AddressingMode.STRUCTURED:
            address = address.upper()
        elif len(address) > 1:
            address = address.rstrip("/")
        return cls(project_root=project_root, address=address, mode=mode)

    @property
    def is_free_form(self) -> bool:
        return self.mode is AddressingMode.FREE_FORM

    @property
    def key(self) -> str:
        """Identity used to serialize runs against the same target."""
        return f"{self.mode.value}:{self.address}"

    def validate(self) -> None:
        """Check that the address is usable for its addressing mode.

        Raises:
            InvalidTargetError: If the address cannot be deployed to
        """
        if not self.address:
            raise InvalidTargetError("Deployment target is empty")
        if self.is_free_form:
            if posixpath.normpath(self.address) != self.address:
                raise InvalidTargetError(
                    f"Deployment directory {self.address} is not a normalized path"
                )
            return
        if len(self.address) > LIBRARY_NAME_MAX_LENGTH:
            raise InvalidTargetError(
                f"Library {self.address} is longer than "
                f"{LIBRARY_NAME_MAX_LENGTH} characters"
            )
        if not _LIBRARY_NAME_RE.match(self.address):
            raise InvalidTargetError(f"{self.address} is not a valid library name")


def _normalize_root(project_root: Path) -> str:
    return str(Path(project_root).expanduser().resolve())


class TargetRegistry:
    """Persists and retrieves the deployment target per project root."""

    def __init__(self, store: SettingsStore):
        """Initialize registry.

        Args:
            store: Settings store holding the ``deployment`` mapping
        """
        self.store = store

    def _targets(self) -> dict[str, str]:
        existing = self.store.get(DEPLOYMENT_KEY)
        return dict(existing) if isinstance(existing, dict) else {}

    def get(self, project_root: Path) -> Optional[DeploymentTarget]:
        """Return the target for a project root, or None if not configured."""
        root = _normalize_root(project_root)
        address = self._targets().get(root)
        if not address:
            return None
        return DeploymentTarget.from_address(root, address)

    def set(self, project_root: Path, address: str) -> DeploymentTarget:
        """Set the target for a project root.

        Raises:
            InvalidTargetError: If the address is empty
        """
        if not address or not address.strip():
            raise InvalidTargetError("Deployment target must not be empty")

        root = _normalize_root(project_root)
        target = DeploymentTarget.from_address(root, address)
        targets = self._targets()
        targets[root] = target.address
        self.store.set(DEPLOYMENT_KEY, targets)
        logger.debug(f"Deployment location for {root} set to {target.address}")
        return target

    def all(self) -> dict[str, str]:
        """Mapping of project root to target address."""
        return self._targets()


def default_address(project_root: Path, user: str) -> str:
    """Suggested IFS build directory for a project without a target."""
    return posixpath.join("/", "home", user, "builds", Path(project_root).name)
