"""Unit tests for ExternalMount and MountIdentity."""

from __future__ import annotations

import pytest

from berth.models.mount import (
    ExternalMount,
    MountIdentity,
    build_external_mount,
    mount_identity,
    mount_point_for,
)


class TestMountIdentity:
    def test_identity_is_case_insensitive(self):
        assert mount_identity("RexRay", "DB1") == mount_identity("rexray", "db1")

    def test_different_driver_is_different_identity(self):
        assert mount_identity("rexray", "db1") != mount_identity("ebs", "db1")

    def test_identity_fields(self):
        identity = mount_identity("RexRay", "Data")
        assert identity == MountIdentity(driver="rexray", name="data")

    def test_identity_does_not_depend_on_options_or_container(self):
        a = ExternalMount("c1", "rexray", "db1", "/mnt/db1", options="size=5")
        b = ExternalMount("c2", "REXRAY", "DB1", "/mnt/DB1", container_path="/data")
        assert a.identity == b.identity


class TestBuildExternalMount:
    def test_mount_point_is_prefix_and_name(self):
        mount = build_external_mount(
            container_id="c1",
            volume_driver="rexray",
            volume_name="db1",
            mount_prefix="/var/lib/rexray/volumes",
        )
        assert mount.mount_point == "/var/lib/rexray/volumes/db1"

    def test_container_path_defaults_to_mount_point(self):
        mount = build_external_mount(
            container_id="c1",
            volume_driver="rexray",
            volume_name="db1",
            mount_prefix="/var/lib/rexray/volumes/",
        )
        assert mount.container_path == "/var/lib/rexray/volumes/db1"
        assert mount.options == ""

    def test_explicit_container_path_and_options(self):
        mount = build_external_mount(
            container_id="c1",
            volume_driver="rexray",
            volume_name="db1",
            mount_prefix="/mnt",
            options="size=5,iops=100",
            container_path="/data",
        )
        assert mount.container_path == "/data"
        assert mount.options == "size=5,iops=100"

    @pytest.mark.parametrize("missing", ["container_id", "volume_driver", "volume_name"])
    def test_required_fields_must_not_be_empty(self, missing: str):
        kwargs = {
            "container_id": "c1",
            "volume_driver": "rexray",
            "volume_name": "db1",
            "mount_prefix": "/mnt",
        }
        kwargs[missing] = ""
        with pytest.raises(ValueError, match=missing):
            build_external_mount(**kwargs)

    def test_mount_point_for(self):
        assert mount_point_for("/mnt/volumes", "x") == "/mnt/volumes/x"
