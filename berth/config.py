"""Berth configuration management.

Configuration sources (in priority order):
1. Environment variables (BERTH_ prefix)
2. Config file (config.yaml)
3. Defaults
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    # The agent-side shim talks to Berth over loopback
    host: str = "127.0.0.1"
    port: int = 8710


class ToolConfig(BaseModel):
    """External volume driver CLI configuration."""

    path: str = "/usr/bin/dvdcli"

    # Applied to every mount/unmount invocation; a timeout counts as a failure
    timeout_seconds: float = Field(default=120.0, gt=0)


class VolumeConfig(BaseModel):
    """Volume request defaults."""

    # Used when LIBSTORAGE_VOLUME_DRIVER[n] is absent
    default_driver: str = "rexray"

    # Host directory where the driver places mounts: <mount_prefix>/<volume_name>
    mount_prefix: str = "/var/lib/rexray/volumes"


class Settings(BaseSettings):
    """Berth application settings."""

    model_config = SettingsConfigDict(
        env_prefix="BERTH_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Agent working directory; the claim snapshot lives here
    work_dir: str = "/tmp/mesos"
    snapshot_filename: str = "libstoragemounts.json"

    server: ServerConfig = Field(default_factory=ServerConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)
    volumes: VolumeConfig = Field(default_factory=VolumeConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment wins over values passed in from the YAML file
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def snapshot_path(self) -> Path:
        """Absolute location of the persisted claim snapshot."""
        return Path(self.work_dir) / self.snapshot_filename


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. BERTH_CONFIG_FILE environment variable
    2. ./config.yaml
    3. /etc/berth/config.yaml
    """
    config_paths = [
        os.environ.get("BERTH_CONFIG_FILE"),
        Path("config.yaml"),
        Path("/etc/berth/config.yaml"),
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Environment variables override values from the YAML file.
    """
    return Settings(**_load_config_file())
