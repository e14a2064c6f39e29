"""Data models."""

from berth.models.container import (
    BindMount,
    ContainerConfig,
    ContainerLaunchInfo,
    ContainerLimitation,
    ContainerState,
    EnvironmentVariable,
    ResourceStatistics,
)
from berth.models.mount import (
    ExternalMount,
    MountIdentity,
    build_external_mount,
    mount_identity,
    mount_point_for,
)

__all__ = [
    "BindMount",
    "ContainerConfig",
    "ContainerLaunchInfo",
    "ContainerLimitation",
    "ContainerState",
    "EnvironmentVariable",
    "ExternalMount",
    "MountIdentity",
    "ResourceStatistics",
    "build_external_mount",
    "mount_identity",
    "mount_point_for",
]
