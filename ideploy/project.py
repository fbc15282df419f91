"""Local project build configuration (``iproj.json`` and ``.env``).

A project describes the object library it builds into and the actions
that can be run against its sources. Action records are validated when
the file is loaded so later code can rely on their shape.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .deploy.executor import TransferExecutor
from .deploy.mapper import MappingSkip, map_structured
from .deploy.provisioner import ObjectProvisioner
from .deploy.run import TransferOutcome
from .deploy.scanner import CandidateFile
from .exceptions import ProjectConfigError

logger = logging.getLogger(__name__)

PROJECT_FILE_NAME = "iproj.json"
ENV_FILE_NAME = ".env"


class FileSystem(str, Enum):
    """Where an action expects its sources."""

    QSYS = "qsys"
    IFS = "ifs"


class CommandEnvironment(str, Enum):
    """Environment an action's command runs in."""

    QSYS = "qsys"


@dataclass(frozen=True)
class Action:
    """A named command that can be run against a source file."""

    name: str
    command: str
    file_system: FileSystem
    command_environment: CommandEnvironment
    extensions: Optional[tuple[str, ...]] = None
    """Lower-case extensions this action applies to (None: all)"""

    @classmethod
    def from_dict(cls, data: Any) -> "Action":
        """Create and validate an Action from its JSON record.

        Raises:
            ProjectConfigError: If a field is missing or has an unknown value
        """
        if not isinstance(data, dict):
            raise ProjectConfigError(f"Action must be an object, got {data!r}")

        name = data.get("name")
        command = data.get("command")
        if not name or not isinstance(name, str):
            raise ProjectConfigError("Action is missing a name")
        if not command or not isinstance(command, str):
            raise ProjectConfigError(f"Action {name} is missing a command")

        try:
            file_system = FileSystem(data.get("fileSystem", "qsys"))
        except ValueError:
            raise ProjectConfigError(
                f"Action {name} has unknown fileSystem {data.get('fileSystem')!r}"
            ) from None
        try:
            environment = CommandEnvironment(data.get("commandEnvironment", "qsys"))
        except ValueError:
            raise ProjectConfigError(
                f"Action {name} has unsupported commandEnvironment "
                f"{data.get('commandEnvironment')!r}"
            ) from None

        extensions = data.get("extensions")
        if extensions is not None:
            if not isinstance(extensions, list):
                raise ProjectConfigError(f"Action {name}: extensions must be a list")
            extensions = tuple(str(ext).lower() for ext in extensions)

        return cls(
            name=name,
            command=command,
            file_system=file_system,
            command_environment=environment,
            extensions=extensions,
        )

    def applies_to(self, extension: str) -> bool:
        if self.extensions is None:
            return True
        return extension.lower().lstrip(".") in self.extensions


@dataclass
class ProjectConfig:
    """Parsed ``iproj.json``."""

    objlib: str = ""
    curlib: str = ""
    description: str = ""
    include_path: list[str] = field(default_factory=list)
    pre_usrlibl: list[str] = field(default_factory=list)
    post_usrlibl: list[str] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectConfig":
        actions = data.get("actions") or []
        if not isinstance(actions, list):
            raise ProjectConfigError("actions must be a list")
        return cls(
            objlib=str(data.get("objlib", "")),
            curlib=str(data.get("curlib", "")),
            description=str(data.get("description", "")),
            include_path=list(data.get("includePath") or []),
            pre_usrlibl=list(data.get("preUsrlibl") or []),
            post_usrlibl=list(data.get("postUsrlibl") or []),
            actions=[Action.from_dict(action) for action in actions],
        )

    def is_valid(self) -> bool:
        """A usable project names an object library and has actions."""
        return bool(self.objlib) and len(self.actions) > 0

    def actions_for(self, extension: str) -> list[Action]:
        """Actions applicable to files with the given extension."""
        return [action for action in self.actions if action.applies_to(extension)]


def load_env_file(project_root: Path) -> dict[str, str]:
    """Parse the project's ``.env`` into a dictionary.

    Lines starting with ``#`` are comments; lines without both a key and a
    value are ignored.
    """
    env_path = project_root / ENV_FILE_NAME
    if not env_path.is_file():
        return {}

    env: dict[str, str] = {}
    content = env_path.read_text(encoding="utf-8").replace("\r", "")
    for line in content.split("\n"):
        if line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        if key and value:
            env[key] = value
    return env


def load_project_config(project_root: Path) -> Optional[ProjectConfig]:
    """Load ``iproj.json`` with ``&VARIABLE`` references expanded from ``.env``.

    Returns:
        ProjectConfig, or None if the project has no configuration file

    Raises:
        ProjectConfigError: If the file is not valid JSON or an action is
            malformed
    """
    config_path = project_root / PROJECT_FILE_NAME
    if not config_path.is_file():
        return None

    text = config_path.read_text(encoding="utf-8")
    for key, value in load_env_file(project_root).items():
        text = text.replace(f"&{key.upper()}", value)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProjectConfigError(f"The configuration file is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProjectConfigError("The configuration file must contain an object")

    return ProjectConfig.from_dict(data)


def _qsys_action(name: str, command: str, extensions: Optional[list[str]]) -> dict:
    action: dict[str, Any] = {
        "name": name,
        "command": command,
        "fileSystem": "qsys",
        "commandEnvironment": "qsys",
    }
    if extensions is not None:
        action["extensions"] = extensions
    return action


DEFAULT_ACTIONS = [
    _qsys_action(
        "Compile: CRTSQLRPGI (Program)",
        "CRTSQLRPGI OBJ(&OBJLIB/&NAME) SRCFILE(&OBJLIB/&FOLDER) CLOSQLCSR(*ENDMOD) "
        "OPTION(*EVENTF) DBGVIEW(*SOURCE) TGTRLS(*CURRENT)",
        ["sqlrpgle"],
    ),
    _qsys_action(
        "Compile: CRTBNDRPG",
        "CRTBNDRPG PGM(&OBJLIB/&NAME) SRCFILE(&OBJLIB/&FOLDER) SRCMBR(&NAME) "
        "OPTION(*EVENTF) DBGVIEW(*SOURCE)",
        ["rpgle"],
    ),
    _qsys_action(
        "Compile: CRTRPGMOD",
        "CRTRPGMOD MOD(&OBJLIB/&NAME) SRCFILE(&OBJLIB/&FOLDER) SRCMBR(&NAME) "
        "OPTION(*EVENTF) DBGVIEW(*SOURCE)",
        ["rpgle"],
    ),
    _qsys_action(
        "Compile: CRTBNDCBL",
        "CRTBNDCBL PGM(&OBJLIB/&NAME) SRCFILE(&OBJLIB/&FOLDER) "
        "OPTION(*SOURCE *EVENTF) DBGVIEW(*SOURCE)",
        ["cbl", "cbble", "cob"],
    ),
    _qsys_action(
        "Compile: CRTCMD",
        "CRTCMD CMD(&OBJLIB/&NAME) PGM(&OBJLIB/&NAME) SRCFILE(&OBJLIB/&FOLDER) "
        "ALLOW(*ALL) CURLIB(*NOCHG) PRDLIB(*NOCHG)",
        ["cmd"],
    ),
    _qsys_action(
        "Compile: CRTBNDCL",
        "CRTBNDCL PGM(&OBJLIB/&NAME) SRCFILE(&OBJLIB/&FOLDER) "
        "OPTION(*EVENTF) DBGVIEW(*SOURCE)",
        ["cl", "clle"],
    ),
    _qsys_action(
        "Compile: CRTPGM",
        "CRTPGM PGM(&OBJLIB/&NAME) MODULE(*PGM) ENTMOD(*FIRST) BNDSRVPGM(*NONE) "
        "BNDDIR(*NONE) ACTGRP(*ENTMOD) TGTRLS(*CURRENT)",
        None,
    ),
]

DEFAULT_ENV = "\n".join(
    [
        "# THIS FILE BELONGS IN THE .gitignore!",
        "# Variables for the local IBM i project",
        "",
        "# DEVLIB is referenced in the ./iproj.json config file.",
        "# .env allows developers to each configure where to build their objects",
        "DEVLIB=DEVLIB",
    ]
)


def create_default_project(project_root: Path) -> bool:
    """Write a default ``iproj.json`` (and ``.env`` if missing).

    Returns:
        True if the configuration was created, False if it already existed
    """
    config_path = project_root / PROJECT_FILE_NAME
    if config_path.exists():
        return False

    data = {
        "version": "0.0.1",
        "description": "IBM i Project",
        "repository": "",
        "objlib": "&DEVLIB",
        "curlib": "&DEVLIB",
        "includePath": [],
        "preUsrlibl": [],
        "postUsrlibl": [],
        "setIBMiEnvCmd": [],
        "actions": DEFAULT_ACTIONS,
    }
    config_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    logger.debug(f"Created {config_path}")

    env_path = project_root / ENV_FILE_NAME
    if not env_path.exists():
        env_path.write_text(DEFAULT_ENV, encoding="utf-8")
    return True


def upload_sources(
    project: ProjectConfig,
    files: list[Path],
    executor: TransferExecutor,
    provisioner: ObjectProvisioner,
) -> list[TransferOutcome]:
    """Upload source files into the project's object library.

    Each file goes to ``OBJLIB/<parent directory>(<name>)`` with its
    extension as source type, provisioned the same way a structured
    deployment is.

    Raises:
        ProjectConfigError: If the project has no object library
    """
    if not project.objlib:
        raise ProjectConfigError("Project has no object library (objlib)")

    outcomes: list[TransferOutcome] = []
    for file_path in files:
        candidate = CandidateFile(
            local_path=file_path,
            relative_path=f"{file_path.parent.name}/{file_path.name}",
        )
        address = map_structured(candidate, project.objlib)
        if isinstance(address, MappingSkip):
            outcomes.append(TransferOutcome.skipped(candidate, address))
            continue
        outcomes.append(executor.transfer(candidate, address, provisioner))
    return outcomes
