"""SnapshotStore - durable copy of the claim registry.

The snapshot is a JSON document written atomically: the new content goes to
a temporary file in the same directory, is fsynced, and then replaces the
previous snapshot with os.replace. A crash mid-write leaves either the old
snapshot or the new one, never a truncated file under the snapshot name.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError

from berth.errors import PersistenceError
from berth.models.mount import ExternalMount

logger = structlog.get_logger()

SNAPSHOT_VERSION = 1


class RegistrySnapshot(BaseModel):
    """On-disk form of the claim registry."""

    version: int = SNAPSHOT_VERSION
    saved_at: datetime | None = None
    containers: dict[str, list[ExternalMount]] = Field(default_factory=dict)


class SnapshotStore:
    """Reads and writes the claim snapshot file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._log = logger.bind(service="snapshot", path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, list[ExternalMount]]:
        """Read the snapshot.

        Returns:
            Container id to claimed mounts; empty if no snapshot exists

        Raises:
            PersistenceError: If the file cannot be read or is not a snapshot
        """
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            self._log.info("snapshot.load.missing")
            return {}
        except OSError as e:
            raise PersistenceError(
                f"Cannot read claim snapshot: {e}",
                details={"path": str(self._path)},
            ) from e

        try:
            snapshot = RegistrySnapshot.model_validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(
                "Claim snapshot is corrupt",
                details={"path": str(self._path), "errors": e.error_count()},
            ) from e

        if snapshot.version != SNAPSHOT_VERSION:
            raise PersistenceError(
                f"Unsupported claim snapshot version: {snapshot.version}",
                details={"path": str(self._path), "version": snapshot.version},
            )

        self._log.info("snapshot.load", containers=len(snapshot.containers))
        return snapshot.containers

    def save(self, claims: Mapping[str, Iterable[ExternalMount]]) -> None:
        """Atomically replace the snapshot with ``claims``.

        Raises:
            PersistenceError: If the snapshot cannot be written
        """
        snapshot = RegistrySnapshot(
            saved_at=datetime.now(UTC),
            containers={cid: list(mounts) for cid, mounts in claims.items()},
        )
        payload = snapshot.model_dump_json(indent=2).encode("utf-8")

        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                dir=self._path.parent,
            )
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as e:
            raise PersistenceError(
                f"Cannot write claim snapshot: {e}",
                details={"path": str(self._path)},
            ) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

        self._log.debug("snapshot.save", containers=len(snapshot.containers))
