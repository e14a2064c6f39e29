"""Unit tests for LibstorageIsolator recovery after an agent restart."""

from __future__ import annotations

from pathlib import Path

import pytest

from berth.config import VolumeConfig
from berth.errors import PersistenceError
from berth.managers.isolator import LibstorageIsolator
from berth.models.container import ContainerConfig, ContainerState, EnvironmentVariable
from berth.models.mount import ExternalMount, mount_identity
from berth.services.snapshot import SnapshotStore
from tests.fakes import FakeMountDriver, FakeSnapshotStore

PREFIX = "/var/lib/rexray/volumes"


def _mount(container_id: str, name: str) -> ExternalMount:
    return ExternalMount(
        container_id=container_id,
        volume_driver="rexray",
        volume_name=name,
        mount_point=f"{PREFIX}/{name}",
        container_path=f"{PREFIX}/{name}",
    )


def _isolator(driver: FakeMountDriver, store) -> LibstorageIsolator:  # noqa: ANN001
    return LibstorageIsolator(
        driver=driver,
        store=store,
        volumes=VolumeConfig(mount_prefix=PREFIX),
    )


def _wants(name: str) -> ContainerConfig:
    return ContainerConfig(
        environment=[EnvironmentVariable(name="LIBSTORAGE_VOLUME_NAME", value=name)]
    )


@pytest.fixture
def driver() -> FakeMountDriver:
    return FakeMountDriver(mount_prefix=PREFIX)


class TestRecover:
    async def test_keeps_live_containers_and_drops_unknown(self, driver: FakeMountDriver):
        store = FakeSnapshotStore(
            {
                "live": [_mount("live", "db1")],
                "gone": [_mount("gone", "db1"), _mount("gone", "scratch")],
            }
        )
        isolator = _isolator(driver, store)

        result = await isolator.recover([ContainerState(container_id="live")])

        assert result.recovered == ["live"]
        assert result.dropped == ["gone"]
        assert isolator.registry.container_ids() == ["live"]
        assert isolator.registry.holders(mount_identity("rexray", "db1")) == ["live"]

    async def test_never_unmounts(self, driver: FakeMountDriver):
        store = FakeSnapshotStore({"gone": [_mount("gone", "scratch")]})
        isolator = _isolator(driver, store)

        result = await isolator.recover([])

        assert driver.unmount_calls == []
        assert result.stale_mounts == [mount_identity("rexray", "scratch")]

    async def test_stale_mounts_exclude_volumes_still_held(self, driver: FakeMountDriver):
        store = FakeSnapshotStore(
            {
                "live": [_mount("live", "db1")],
                "gone": [_mount("gone", "db1"), _mount("gone", "scratch")],
            }
        )
        isolator = _isolator(driver, store)

        result = await isolator.recover([ContainerState(container_id="live")])

        assert result.stale_mounts == [mount_identity("rexray", "scratch")]

    async def test_orphans_keep_their_claims(self, driver: FakeMountDriver):
        store = FakeSnapshotStore({"orphan": [_mount("orphan", "db1")]})
        isolator = _isolator(driver, store)

        result = await isolator.recover([], orphans=["orphan"])

        assert result.recovered == ["orphan"]
        assert result.dropped == []
        assert "orphan" in isolator.registry

    async def test_dropped_entries_are_persisted_away(self, driver: FakeMountDriver):
        store = FakeSnapshotStore(
            {"live": [_mount("live", "db1")], "gone": [_mount("gone", "x")]}
        )
        isolator = _isolator(driver, store)

        await isolator.recover([ContainerState(container_id="live")])

        assert list(store.saved) == ["live"]

    async def test_nothing_dropped_does_not_rewrite_snapshot(self, driver: FakeMountDriver):
        store = FakeSnapshotStore({"live": [_mount("live", "db1")]})
        isolator = _isolator(driver, store)

        await isolator.recover([ContainerState(container_id="live")])

        assert store.save_calls == 0

    async def test_empty_snapshot_recovers_nothing(self, driver: FakeMountDriver):
        isolator = _isolator(driver, FakeSnapshotStore())

        result = await isolator.recover([ContainerState(container_id="c1")])

        assert result.recovered == []
        assert result.dropped == []
        assert len(isolator.registry) == 0

    async def test_unreadable_snapshot_fails_recovery(self, driver: FakeMountDriver):
        store = FakeSnapshotStore()
        store.load_error = PersistenceError("Claim snapshot is corrupt")
        isolator = _isolator(driver, store)

        with pytest.raises(PersistenceError):
            await isolator.recover([])

    async def test_recovered_claims_keep_volume_mounted_on_cleanup(
        self,
        driver: FakeMountDriver,
    ):
        store = FakeSnapshotStore(
            {"a": [_mount("a", "db1")], "b": [_mount("b", "db1")]}
        )
        isolator = _isolator(driver, store)
        await isolator.recover(
            [ContainerState(container_id="a"), ContainerState(container_id="b")]
        )

        await isolator.cleanup("a")
        assert driver.unmount_calls == []

        await isolator.cleanup("b")
        assert driver.unmounted_names() == ["db1"]


class TestMemoryOverSnapshot:
    """Claims held in memory survive recover even if their save failed."""

    async def test_claim_missed_by_failed_save_after_load(self, driver: FakeMountDriver):
        store = FakeSnapshotStore()
        isolator = _isolator(driver, store)
        await isolator.load()

        store.fail_save = True
        await isolator.prepare("a", _wants("db1"))
        store.fail_save = False

        result = await isolator.recover([ContainerState(container_id="a")])
        await isolator.prepare("b", _wants("db1"))

        assert result.recovered == ["a"]
        assert len(driver.mount_calls) == 1
        assert isolator.registry.holders(mount_identity("rexray", "db1")) == ["a", "b"]
        assert sorted(store.saved) == ["a", "b"]

    async def test_claim_missed_by_failed_save_without_load(self, driver: FakeMountDriver):
        store = FakeSnapshotStore({"old": [_mount("old", "logs")]})
        isolator = _isolator(driver, store)

        store.fail_save = True
        await isolator.prepare("a", _wants("db1"))
        store.fail_save = False

        result = await isolator.recover(
            [ContainerState(container_id="a"), ContainerState(container_id="old")]
        )
        await isolator.prepare("b", _wants("db1"))

        assert sorted(result.recovered) == ["a", "old"]
        assert len(driver.mount_calls) == 1
        assert list(store.saved) == ["old", "a", "b"]

    async def test_release_missed_by_failed_save_is_not_revived(
        self,
        driver: FakeMountDriver,
    ):
        store = FakeSnapshotStore()
        isolator = _isolator(driver, store)
        await isolator.load()
        await isolator.prepare("a", _wants("db1"))

        store.fail_save = True
        await isolator.cleanup("a")
        store.fail_save = False
        assert "a" in store.saved

        result = await isolator.recover([ContainerState(container_id="a")])

        assert result.recovered == []
        assert "a" not in isolator.registry
        assert store.saved == {}

    async def test_snapshot_not_reread_after_load(self, driver: FakeMountDriver):
        store = FakeSnapshotStore()
        isolator = _isolator(driver, store)
        await isolator.load()
        store.load_error = PersistenceError("Claim snapshot is corrupt")

        result = await isolator.recover([])

        assert result.recovered == []


class TestLoad:
    async def test_load_restores_without_reconciling(self, driver: FakeMountDriver):
        store = FakeSnapshotStore({"c1": [_mount("c1", "db1")], "c2": [_mount("c2", "x")]})
        isolator = _isolator(driver, store)

        restored = await isolator.load()

        assert restored == 2
        assert sorted(isolator.registry.container_ids()) == ["c1", "c2"]
        assert store.save_calls == 0


class TestRestartRoundTrip:
    async def test_claims_survive_restart(self, tmp_path: Path):
        snapshot_path = tmp_path / "work" / "libstoragemounts.json"
        driver = FakeMountDriver(mount_prefix=PREFIX)

        first = _isolator(driver, SnapshotStore(snapshot_path))
        await first.prepare(
            "c1",
            ContainerConfig(
                environment=[
                    EnvironmentVariable(name="LIBSTORAGE_VOLUME_NAME", value="db1"),
                    EnvironmentVariable(name="LIBSTORAGE_VOLUME_OPTS", value="size=5"),
                    EnvironmentVariable(name="LIBSTORAGE_VOLUME_CONTAINERPATH", value="/data"),
                ]
            ),
        )

        # New process, same host
        second = _isolator(driver, SnapshotStore(snapshot_path))
        result = await second.recover([ContainerState(container_id="c1")])

        assert result.recovered == ["c1"]
        assert second.registry.claims("c1") == first.registry.claims("c1")

        # The volume is already mounted; a second user must not remount it
        await second.prepare(
            "c2",
            ContainerConfig(
                environment=[EnvironmentVariable(name="LIBSTORAGE_VOLUME_NAME", value="db1")]
            ),
        )
        assert len(driver.mount_calls) == 1
