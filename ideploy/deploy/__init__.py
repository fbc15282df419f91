"""Deployment engine for ideploy - change sets, mapping and transfer."""

from .engine import DeploymentEngine
from .executor import TransferExecutor
from .ignore import (
    DEFAULT_IGNORE_PATTERNS,
    IGNORE_FILE_NAME,
    IgnoreRule,
    IgnoreRuleSet,
    load_ignore_file,
)
from .mapper import (
    FreeFormAddress,
    MappingSkip,
    RemoteAddress,
    StructuredAddress,
    map_candidate,
)
from .modes import AddressingMode, ChangeSelection, RunStatus, TransferStatus
from .provisioner import ObjectProvisioner
from .registry import (
    DeploymentTarget,
    JsonSettingsStore,
    MemorySettingsStore,
    SettingsStore,
    TargetRegistry,
    default_address,
)
from .run import DeploymentRun, TransferOutcome
from .scanner import CandidateFile, ChangeSetResolver, iter_full_tree
from .transport import (
    CommandResult,
    CommandRunner,
    ContentWriter,
    LocalTransport,
    MemberContentWriter,
    NullSink,
    ReportingSink,
    SystemCommandRunner,
    Transport,
)
from .vcs import GitVersionControl, VersionControl

__all__ = [
    "DeploymentEngine",
    "TransferExecutor",
    "ObjectProvisioner",
    "ChangeSetResolver",
    "CandidateFile",
    "iter_full_tree",
    "IgnoreRule",
    "IgnoreRuleSet",
    "IGNORE_FILE_NAME",
    "DEFAULT_IGNORE_PATTERNS",
    "load_ignore_file",
    "FreeFormAddress",
    "StructuredAddress",
    "RemoteAddress",
    "MappingSkip",
    "map_candidate",
    "AddressingMode",
    "ChangeSelection",
    "RunStatus",
    "TransferStatus",
    "DeploymentTarget",
    "TargetRegistry",
    "SettingsStore",
    "JsonSettingsStore",
    "MemorySettingsStore",
    "default_address",
    "DeploymentRun",
    "TransferOutcome",
    "Transport",
    "LocalTransport",
    "CommandRunner",
    "CommandResult",
    "SystemCommandRunner",
    "ContentWriter",
    "MemberContentWriter",
    "ReportingSink",
    "NullSink",
    "VersionControl",
    "GitVersionControl",
]
