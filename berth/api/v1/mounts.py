"""Host mount overview (read-only)."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from berth.api.dependencies import IsolatorDep

router = APIRouter()


class HostMountResponse(BaseModel):
    """An external volume mounted on this host and who holds it."""

    volume_driver: str
    volume_name: str
    mount_point: str
    holders: list[str]


class HostMountListResponse(BaseModel):
    items: list[HostMountResponse]


@router.get("/mounts", response_model=HostMountListResponse)
async def list_mounts(isolator: IsolatorDep) -> HostMountListResponse:
    registry = isolator.registry
    items = []
    for identity, claims in sorted(registry.mounts().items(), key=lambda item: item[0]):
        first = claims[0]
        items.append(
            HostMountResponse(
                volume_driver=first.volume_driver,
                volume_name=first.volume_name,
                mount_point=first.mount_point,
                holders=registry.holders(identity),
            )
        )
    return HostMountListResponse(items=items)
