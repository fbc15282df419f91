"""Configuration management for ideploy."""

import os
from pathlib import Path

DEFAULT_CONCURRENCY = 5
SETTINGS_FILE_NAME = "settings.json"


class Config:
    """Runtime configuration resolved from the environment.

    Values are read lazily so tests and the CLI can change the environment
    after import.
    """

    @property
    def config_dir(self) -> Path:
        """Directory holding ideploy's persistent settings."""
        override = os.environ.get("IDEPLOY_CONFIG_DIR")
        if override:
            return Path(override).expanduser()
        return Path.home() / ".config" / "ideploy"

    @property
    def settings_path(self) -> Path:
        """Path of the JSON settings store."""
        return self.config_dir / SETTINGS_FILE_NAME

    @property
    def concurrency(self) -> int:
        """Number of parallel transfers for free-form deployments."""
        value = os.environ.get("IDEPLOY_CONCURRENCY")
        if not value:
            return DEFAULT_CONCURRENCY
        try:
            return max(1, int(value))
        except ValueError:
            return DEFAULT_CONCURRENCY

    @property
    def remote_tmp_dir(self) -> str:
        """Remote directory used to stage member content before copying."""
        return os.environ.get("IDEPLOY_REMOTE_TMP", "/tmp")


config = Config()
