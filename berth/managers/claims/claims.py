"""ClaimRegistry - which containers hold which external mounts.

Holder counts are derived by scanning every entry; there is no separate
counter.

The registry does no locking of its own; LibstorageIsolator serializes every
read-modify-write sequence.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from berth.errors import ConflictError
from berth.models.mount import ExternalMount, MountIdentity


class ClaimRegistry:
    """Multi-valued map of container id to the external mounts it claims."""

    def __init__(self) -> None:
        self._claims: dict[str, tuple[ExternalMount, ...]] = {}

    def __len__(self) -> int:
        return len(self._claims)

    def __contains__(self, container_id: object) -> bool:
        return container_id in self._claims

    def container_ids(self) -> list[str]:
        return list(self._claims)

    def claims(self, container_id: str) -> tuple[ExternalMount, ...]:
        """Mounts claimed by a container (empty if it holds none)."""
        return self._claims.get(container_id, ())

    def holders(self, identity: MountIdentity) -> list[str]:
        """Containers holding at least one claim with this identity."""
        return [
            container_id
            for container_id, mounts in self._claims.items()
            if any(m.identity == identity for m in mounts)
        ]

    def holder_count(self, identity: MountIdentity) -> int:
        """Number of distinct containers holding this identity."""
        return len(self.holders(identity))

    def add_claims(self, container_id: str, mounts: Iterable[ExternalMount]) -> None:
        """Install a container's complete claim set.

        Raises:
            ConflictError: If the container already holds claims
            ValueError: If mounts is empty
        """
        if container_id in self._claims:
            raise ConflictError(
                f"Container already holds volume claims: {container_id}",
                details={"container_id": container_id},
            )
        claimed = tuple(mounts)
        if not claimed:
            raise ValueError("Cannot register an empty claim set")
        self._claims[container_id] = claimed

    def remove_claims(self, container_id: str) -> tuple[ExternalMount, ...]:
        """Drop a container's claims and return them.

        Unknown containers return an empty tuple.
        """
        return self._claims.pop(container_id, ())

    def mounts(self) -> dict[MountIdentity, list[ExternalMount]]:
        """Every claim grouped by identity."""
        grouped: dict[MountIdentity, list[ExternalMount]] = {}
        for mounts in self._claims.values():
            for mount in mounts:
                grouped.setdefault(mount.identity, []).append(mount)
        return grouped

    def snapshot(self) -> dict[str, tuple[ExternalMount, ...]]:
        """Copy of the full registry for persistence."""
        return dict(self._claims)

    def restore(self, claims: Mapping[str, Iterable[ExternalMount]]) -> None:
        """Replace the registry contents, skipping containers with no claims."""
        restored = {
            container_id: tuple(mounts) for container_id, mounts in claims.items()
        }
        self._claims = {k: v for k, v in restored.items() if v}
