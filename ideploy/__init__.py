"""ideploy - deploy local source trees to IBM i IFS directories and libraries."""

from .deploy import ChangeSelection, DeploymentEngine, TargetRegistry
from .exceptions import (
    DeployConfigError,
    DeployError,
    InvalidTargetError,
    NoRepositoryForRootError,
    NoTargetConfiguredError,
    ProjectConfigError,
    RemoteCommandError,
    RunInProgressError,
    TransferError,
)

__version__ = "0.1.0"

__all__ = [
    "ChangeSelection",
    "DeploymentEngine",
    "TargetRegistry",
    "DeployError",
    "DeployConfigError",
    "InvalidTargetError",
    "NoRepositoryForRootError",
    "NoTargetConfiguredError",
    "ProjectConfigError",
    "RemoteCommandError",
    "RunInProgressError",
    "TransferError",
]
