"""LibstorageIsolator - external volume lifecycle for agent containers.

The agent drives the isolator through its container lifecycle callbacks:

- recover: rebuild claims from the snapshot after an agent restart
- prepare: claim (and mount if first holder) every requested volume
- cleanup: release claims (and unmount if last holder)
- isolate / watch / update / usage: no-ops, all work happens in
  prepare and cleanup

A volume is mounted exactly once per host no matter how many containers use
it. Prepare is all-or-nothing: if any mount fails, every mount issued by the
same call is reverted and the container gets no claims.

Concurrency: a single asyncio.Lock guards every registry read-modify-write,
including the mount/unmount calls made while deciding holder counts. Two
containers asking for the same volume are therefore serialized, and the
second one always observes the first one's claim.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from berth.errors import ConflictError, PersistenceError
from berth.managers.claims import ClaimRegistry
from berth.models.container import (
    BindMount,
    ContainerConfig,
    ContainerLaunchInfo,
    ContainerLimitation,
    ContainerState,
    ResourceStatistics,
)
from berth.validators.environment import parse_volume_requests

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from berth.config import VolumeConfig
    from berth.drivers.base import MountDriver
    from berth.models.mount import ExternalMount, MountIdentity
    from berth.services.snapshot import SnapshotStore

logger = structlog.get_logger()


@dataclass
class RecoverResult:
    """Outcome of reconciling the snapshot with the agent's containers.

    Attributes:
        recovered: Container ids whose claims were kept
        dropped: Container ids the agent no longer knows about
        stale_mounts: Identities left mounted with no remaining holder
    """

    recovered: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    stale_mounts: list[MountIdentity] = field(default_factory=list)


class LibstorageIsolator:
    """Reference-counted external volume mounts for agent containers."""

    def __init__(
        self,
        driver: MountDriver,
        store: SnapshotStore,
        volumes: VolumeConfig,
    ) -> None:
        self._driver = driver
        self._store = store
        self._volumes = volumes
        self._registry = ClaimRegistry()
        self._loaded = False
        self._lock = asyncio.Lock()
        self._log = logger.bind(manager="isolator")

    @property
    def registry(self) -> ClaimRegistry:
        return self._registry

    # Recovery

    async def load(self) -> int:
        """Restore claims from the snapshot as-is.

        Run at service start-up so claims made before a restart are honoured
        even before the agent calls recover.

        Returns:
            Number of containers restored
        """
        async with self._lock:
            claims = await asyncio.to_thread(self._store.load)
            self._registry.restore(claims)
            self._loaded = True
            self._log.info("isolator.load", containers=len(self._registry))
            return len(self._registry)

    async def recover(
        self,
        states: Iterable[ContainerState],
        orphans: Iterable[str] = (),
    ) -> RecoverResult:
        """Rebuild claims after an agent restart.

        The snapshot is read only if load() has not run yet; claims already
        held in memory win over it either way. Entries whose container is
        neither live nor a known orphan are dropped. Volumes left without
        holders are NOT unmounted; they are logged and reported as
        stale_mounts.

        Raises:
            PersistenceError: If the snapshot is read and turns out unreadable
        """
        known = {state.container_id for state in states} | set(orphans)

        async with self._lock:
            stored: dict[str, tuple[ExternalMount, ...]] = {}
            from_snapshot = not self._loaded
            if from_snapshot:
                snapshot = await asyncio.to_thread(self._store.load)
                stored = {cid: tuple(mounts) for cid, mounts in snapshot.items()}
                self._loaded = True

            # Memory is authoritative over the snapshot
            claims = {**stored, **self._registry.snapshot()}

            result = RecoverResult()
            kept: dict[str, tuple[ExternalMount, ...]] = {}
            for container_id, mounts in claims.items():
                if container_id in known:
                    kept[container_id] = mounts
                    result.recovered.append(container_id)
                else:
                    result.dropped.append(container_id)

            self._registry.restore(kept)

            if result.dropped:
                dropped_identities = {
                    m.identity
                    for container_id in result.dropped
                    for m in claims[container_id]
                }
                result.stale_mounts = sorted(
                    identity
                    for identity in dropped_identities
                    if self._registry.holder_count(identity) == 0
                )
                for identity in result.stale_mounts:
                    self._log.warning(
                        "isolator.recover.stale_mount",
                        volume_driver=identity.driver,
                        volume_name=identity.name,
                    )

            # Memory may hold changes an earlier failed save never wrote
            if result.dropped or not from_snapshot or kept != stored:
                await self._persist()

            self._log.info(
                "isolator.recover",
                recovered=len(result.recovered),
                dropped=result.dropped,
            )
            return result

    # Prepare

    async def prepare(
        self,
        container_id: str,
        config: ContainerConfig,
    ) -> ContainerLaunchInfo | None:
        """Claim the container's requested volumes, mounting first uses.

        Returns:
            Bind mounts for the container, or None if it requested no volumes

        Raises:
            InvalidInputError: If the volume environment is malformed
            ConflictError: If the container already holds claims
            ExternalToolError: If a mount failed (after rollback)
        """
        mounts = parse_volume_requests(
            container_id,
            config.environment,
            default_driver=self._volumes.default_driver,
            mount_prefix=self._volumes.mount_prefix,
        )
        if not mounts:
            self._log.debug("isolator.prepare.no_volumes", container_id=container_id)
            return None

        # Once a mount has been issued it must run to completion
        await asyncio.shield(self._prepare_locked(container_id, mounts))

        return ContainerLaunchInfo(
            mounts=[BindMount(source=m.mount_point, target=m.container_path) for m in mounts]
        )

    async def _prepare_locked(
        self,
        container_id: str,
        mounts: Sequence[ExternalMount],
    ) -> None:
        async with self._lock:
            if container_id in self._registry:
                raise ConflictError(
                    f"Container already holds volume claims: {container_id}",
                    details={"container_id": container_id},
                )

            self._log.info(
                "isolator.prepare",
                container_id=container_id,
                volumes=[m.volume_name for m in mounts],
            )

            mounted: list[ExternalMount] = []
            handled: set[MountIdentity] = set()
            for mount in mounts:
                identity = mount.identity
                if identity in handled:
                    continue
                handled.add(identity)

                holders = self._registry.holder_count(identity)
                if holders > 0:
                    self._log.info(
                        "isolator.prepare.reuse",
                        container_id=container_id,
                        volume_name=mount.volume_name,
                        volume_driver=mount.volume_driver,
                        holders=holders,
                    )
                    continue

                try:
                    mount_point = await self._driver.mount(mount)
                except Exception as e:
                    self._log.error(
                        "isolator.prepare.mount_failed",
                        container_id=container_id,
                        volume_name=mount.volume_name,
                        error=str(e),
                    )
                    await self._revert_mounts(container_id, mounted)
                    raise

                mounted.append(mount)
                self._log.info(
                    "isolator.prepare.mounted",
                    container_id=container_id,
                    volume_name=mount.volume_name,
                    mount_point=mount_point,
                )

            self._registry.add_claims(container_id, mounts)
            await self._persist()

    async def _revert_mounts(
        self,
        container_id: str,
        mounted: Sequence[ExternalMount],
    ) -> None:
        """Unmount what this prepare call mounted, newest first, best-effort."""
        for mount in reversed(mounted):
            try:
                await self._driver.unmount(mount)
            except Exception as e:
                self._log.warning(
                    "isolator.prepare.rollback_failed",
                    container_id=container_id,
                    volume_name=mount.volume_name,
                    error=str(e),
                )
            else:
                self._log.info(
                    "isolator.prepare.rolled_back",
                    container_id=container_id,
                    volume_name=mount.volume_name,
                )

    # Cleanup

    async def cleanup(self, container_id: str) -> None:
        """Release the container's claims, unmounting volumes nobody else holds.

        Unknown containers are ignored. Unmount failures are logged and the
        claims are released anyway.
        """
        await asyncio.shield(self._cleanup_locked(container_id))

    async def _cleanup_locked(self, container_id: str) -> None:
        async with self._lock:
            released = self._registry.remove_claims(container_id)
            if not released:
                self._log.debug("isolator.cleanup.unknown", container_id=container_id)
                return

            self._log.info(
                "isolator.cleanup",
                container_id=container_id,
                volumes=[m.volume_name for m in released],
            )

            handled: set[MountIdentity] = set()
            for mount in released:
                identity = mount.identity
                if identity in handled:
                    continue
                handled.add(identity)

                holders = self._registry.holder_count(identity)
                if holders > 0:
                    self._log.info(
                        "isolator.cleanup.still_in_use",
                        container_id=container_id,
                        volume_name=mount.volume_name,
                        holders=holders,
                    )
                    continue

                try:
                    await self._driver.unmount(mount)
                except Exception as e:
                    self._log.warning(
                        "isolator.cleanup.unmount_failed",
                        container_id=container_id,
                        volume_name=mount.volume_name,
                        error=str(e),
                    )

            await self._persist()

    # No-op hooks

    async def isolate(self, container_id: str, pid: int) -> None:
        return None

    async def watch(self, container_id: str) -> ContainerLimitation | None:
        return None

    async def update(self, container_id: str, resources: dict[str, Any]) -> None:
        return None

    async def usage(self, container_id: str) -> ResourceStatistics:
        return ResourceStatistics(timestamp=datetime.now(UTC))

    # Persistence

    async def _persist(self) -> None:
        """Write the registry to disk; failures leave memory authoritative."""
        try:
            await asyncio.to_thread(self._store.save, self._registry.snapshot())
        except PersistenceError as e:
            self._log.error(
                "isolator.persist_failed",
                error=e.message,
                containers=len(self._registry),
            )
