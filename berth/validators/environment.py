"""Volume request extraction from untrusted task environment.

Tasks request external volumes through environment variables:

    LIBSTORAGE_VOLUME_NAME[n]           volume name (required per slot)
    LIBSTORAGE_VOLUME_DRIVER[n]         backend driver (default from config)
    LIBSTORAGE_VOLUME_OPTS[n]           free-form driver options
    LIBSTORAGE_VOLUME_CONTAINERPATH[n]  path inside the container

The unindexed form is the first volume; suffixes 2..10 address the others.
Names and drivers end up on the mount tool's command line, so they are
restricted to a safe character set.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from berth.errors import InvalidInputError
from berth.models.container import EnvironmentVariable
from berth.models.mount import ExternalMount, build_external_mount

MAX_VOLUMES = 10

PROHIBITED_CHARS = frozenset(
    [
        "%", "/", ":", ";", "\0",
        "<", ">", "|", "`", "$", "'",
        "?", "^", "&", " ", "{", '"',
        "}", "[", "]", "\n", "\t", "\v", "\b", "\r", "\\",
    ]
)  # fmt: skip


class VolumeField(str, Enum):
    """Environment variable family, valued by its base name."""

    NAME = "LIBSTORAGE_VOLUME_NAME"
    DRIVER = "LIBSTORAGE_VOLUME_DRIVER"
    OPTS = "LIBSTORAGE_VOLUME_OPTS"
    CONTAINER_PATH = "LIBSTORAGE_VOLUME_CONTAINERPATH"

    @property
    def limit_charset(self) -> bool:
        return self in (VolumeField.NAME, VolumeField.DRIVER)


@dataclass
class _Slot:
    values: dict[VolumeField, str] = field(default_factory=dict)


def contains_prohibited_chars(value: str) -> bool:
    """Return True if value holds any character unsafe for the mount tool."""
    return any(ch in PROHIBITED_CHARS for ch in value)


def _match_field(name: str) -> VolumeField | None:
    for volume_field in VolumeField:
        if name.startswith(volume_field.value):
            return volume_field
    return None


def _slot_index(volume_field: VolumeField, name: str) -> int:
    """Map a variable name to its zero-based slot.

    Raises:
        InvalidInputError: If the suffix does not name a slot
    """
    suffix = name[len(volume_field.value) :]
    if suffix == "":
        return 0
    # Only "2".."10"; "1", "01" and "+2" are not accepted spellings
    if suffix.isdigit() and not suffix.startswith("0"):
        index = int(suffix)
        if 2 <= index <= MAX_VOLUMES:
            return index - 1
    raise InvalidInputError(
        f"Unexpected volume environment variable: {name}",
        details={"variable": name, "reason": "unknown_slot"},
    )


def _validate_value(volume_field: VolumeField, name: str, value: str) -> str:
    if volume_field.limit_charset:
        if not value:
            raise InvalidInputError(
                f"{name} cannot be empty",
                details={"variable": name, "reason": "empty_value"},
            )
        if contains_prohibited_chars(value):
            raise InvalidInputError(
                f"{name} contains prohibited characters",
                details={"variable": name, "reason": "prohibited_chars"},
            )
    elif volume_field is VolumeField.CONTAINER_PATH:
        _validate_container_path(name, value)
    return value


def _validate_container_path(name: str, value: str) -> None:
    if "\x00" in value:
        raise InvalidInputError(
            f"{name} contains invalid characters",
            details={"variable": name, "reason": "null_byte"},
        )
    path = PurePosixPath(value)
    if not path.is_absolute():
        raise InvalidInputError(
            f"{name} must be an absolute path",
            details={"variable": name, "reason": "relative_path"},
        )
    if ".." in path.parts:
        raise InvalidInputError(
            f"{name} must not contain '..'",
            details={"variable": name, "reason": "path_traversal"},
        )


def parse_volume_requests(
    container_id: str,
    environment: Iterable[EnvironmentVariable],
    *,
    default_driver: str,
    mount_prefix: str,
) -> list[ExternalMount]:
    """Extract the container's volume claims from its environment.

    Args:
        container_id: Container the claims belong to
        environment: Task environment variables
        default_driver: Driver used when a slot does not name one
        mount_prefix: Host directory the driver mounts volumes under

    Returns:
        One ExternalMount per requested volume, in slot order. Empty when
        the task requests no volumes.

    Raises:
        InvalidInputError: If any volume variable is malformed
    """
    slots = [_Slot() for _ in range(MAX_VOLUMES)]

    for var in environment:
        volume_field = _match_field(var.name)
        if volume_field is None:
            continue

        slot = slots[_slot_index(volume_field, var.name)]
        if volume_field in slot.values:
            raise InvalidInputError(
                f"Duplicate volume environment variable: {var.name}",
                details={"variable": var.name, "reason": "duplicate"},
            )
        slot.values[volume_field] = _validate_value(volume_field, var.name, var.value)

    mounts: list[ExternalMount] = []
    for index, slot in enumerate(slots):
        if not slot.values:
            continue

        volume_name = slot.values.get(VolumeField.NAME)
        if volume_name is None:
            raise InvalidInputError(
                f"Volume {index + 1} is configured without a volume name",
                details={"slot": index + 1, "reason": "missing_name"},
            )

        mounts.append(
            build_external_mount(
                container_id=container_id,
                volume_driver=slot.values.get(VolumeField.DRIVER, default_driver),
                volume_name=volume_name,
                mount_prefix=mount_prefix,
                options=slot.values.get(VolumeField.OPTS, ""),
                container_path=slot.values.get(VolumeField.CONTAINER_PATH),
            )
        )

    return mounts
