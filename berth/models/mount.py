"""External mount descriptor and its identity key.

An ExternalMount is one container's claim on one external volume. Claims from
different containers that share a MountIdentity refer to the same host mount.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import NamedTuple


class MountIdentity(NamedTuple):
    """Case-insensitive (driver, volume name) key of an external mount."""

    driver: str
    name: str


def mount_identity(volume_driver: str, volume_name: str) -> MountIdentity:
    """Derive the identity shared by all claims on the same external volume."""
    return MountIdentity(volume_driver.lower(), volume_name.lower())


def mount_point_for(mount_prefix: str, volume_name: str) -> str:
    """Host path where the driver places ``volume_name``."""
    return str(PurePosixPath(mount_prefix) / volume_name)


@dataclass(frozen=True)
class ExternalMount:
    """A single external volume claimed by a container.

    Attributes:
        container_id: Agent-assigned container identifier
        volume_driver: Storage backend plugin name (e.g. "rexray")
        volume_name: Backend-scoped volume name
        mount_point: Host path of the mount, ``<prefix>/<volume_name>``
        options: Opaque driver option string, may be empty
        container_path: Path inside the container the mount is exposed at
    """

    container_id: str
    volume_driver: str
    volume_name: str
    mount_point: str
    options: str = ""
    container_path: str = ""

    @property
    def identity(self) -> MountIdentity:
        return mount_identity(self.volume_driver, self.volume_name)


def build_external_mount(
    *,
    container_id: str,
    volume_driver: str,
    volume_name: str,
    mount_prefix: str,
    options: str = "",
    container_path: str | None = None,
) -> ExternalMount:
    """Create an ExternalMount with its derived mount point.

    The container path defaults to the host mount point.

    Raises:
        ValueError: If a required field is empty
    """
    for field_name, value in (
        ("container_id", container_id),
        ("volume_driver", volume_driver),
        ("volume_name", volume_name),
        ("mount_prefix", mount_prefix),
    ):
        if not value:
            raise ValueError(f"{field_name} must not be empty")

    mount_point = mount_point_for(mount_prefix, volume_name)
    return ExternalMount(
        container_id=container_id,
        volume_driver=volume_driver,
        volume_name=volume_name,
        mount_point=mount_point,
        options=options,
        container_path=container_path or mount_point,
    )
