"""Exceptions raised by ideploy."""


class DeployError(Exception):
    """Base exception for all deployment errors."""


class DeployConfigError(DeployError):
    """Raised when deployment configuration is missing or invalid."""


class NoTargetConfiguredError(DeployConfigError):
    """Raised when a project root has no deployment target."""

    def __init__(self, project_root: str):
        self.project_root = project_root
        super().__init__(
            f"Chosen location ({project_root}) is not configured for deployment."
        )


class InvalidTargetError(DeployConfigError):
    """Raised when a deployment target cannot be used."""


class ProjectConfigError(DeployConfigError):
    """Raised when iproj.json is malformed or fails validation."""


class NoRepositoryForRootError(DeployError):
    """Raised when no repository is registered for a project root."""

    def __init__(self, project_root: str):
        self.project_root = project_root
        super().__init__(f"No repository found for {project_root}")


class RunInProgressError(DeployError):
    """Raised when a deployment is requested for a target that is already busy."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"A deployment to {target} is already running")


class RemoteCommandError(DeployError):
    """Raised when a remote command cannot be executed or reports failure."""

    def __init__(self, command: str, message: str, exit_code: int = -1):
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"{message} (command: {command})")


class TransferError(DeployError):
    """Raised when bytes cannot be written to a remote path."""
