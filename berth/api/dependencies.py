"""FastAPI dependencies for Berth API."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from berth.config import get_settings
from berth.drivers.base import MountDriver
from berth.drivers.dvdcli import DvdcliDriver
from berth.managers.isolator import LibstorageIsolator
from berth.services.snapshot import SnapshotStore


@lru_cache
def get_driver() -> MountDriver:
    """Get cached mount driver instance."""
    settings = get_settings()
    return DvdcliDriver(settings.tool, mount_prefix=settings.volumes.mount_prefix)


@lru_cache
def get_isolator() -> LibstorageIsolator:
    """Get the process-wide isolator.

    There must be exactly one: its lock is what serializes claim updates.
    """
    settings = get_settings()
    return LibstorageIsolator(
        driver=get_driver(),
        store=SnapshotStore(settings.snapshot_path),
        volumes=settings.volumes,
    )


IsolatorDep = Annotated[LibstorageIsolator, Depends(get_isolator)]
