"""Container lifecycle endpoints.

One endpoint per agent callback. prepare and cleanup do the real work;
isolate, watch, update and usage answer immediately.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from berth.api.dependencies import IsolatorDep
from berth.models.container import (
    ContainerConfig,
    ContainerLaunchInfo,
    ContainerLimitation,
    ResourceStatistics,
)

router = APIRouter()


# Request/Response Models


class PrepareResponse(BaseModel):
    """Result of preparing a container."""

    launch_info: ContainerLaunchInfo | None = None


class IsolateRequest(BaseModel):
    pid: int = Field(..., ge=1)


class UpdateRequest(BaseModel):
    resources: dict[str, Any] = Field(default_factory=dict)


class WatchResponse(BaseModel):
    limitation: ContainerLimitation | None = None


class MountResponse(BaseModel):
    """One volume claimed by a container."""

    volume_driver: str
    volume_name: str
    mount_point: str
    options: str
    container_path: str


class ContainerMountsResponse(BaseModel):
    container_id: str
    mounts: list[MountResponse]


# Endpoints


@router.post("/{container_id}/prepare", response_model=PrepareResponse)
async def prepare_container(
    container_id: str,
    config: ContainerConfig,
    isolator: IsolatorDep,
) -> PrepareResponse:
    """Claim and, for first users, mount the container's volumes.

    Fails as a whole: on error nothing requested by this call stays mounted.
    """
    launch_info = await isolator.prepare(container_id, config)
    return PrepareResponse(launch_info=launch_info)


@router.post("/{container_id}/isolate", status_code=204)
async def isolate_container(
    container_id: str,
    request: IsolateRequest,
    isolator: IsolatorDep,
) -> Response:
    await isolator.isolate(container_id, request.pid)
    return Response(status_code=204)


@router.get("/{container_id}/watch", response_model=WatchResponse)
async def watch_container(container_id: str, isolator: IsolatorDep) -> WatchResponse:
    return WatchResponse(limitation=await isolator.watch(container_id))


@router.post("/{container_id}/update", status_code=204)
async def update_container(
    container_id: str,
    request: UpdateRequest,
    isolator: IsolatorDep,
) -> Response:
    await isolator.update(container_id, request.resources)
    return Response(status_code=204)


@router.get("/{container_id}/usage", response_model=ResourceStatistics)
async def container_usage(container_id: str, isolator: IsolatorDep) -> ResourceStatistics:
    return await isolator.usage(container_id)


@router.post("/{container_id}/cleanup", status_code=204)
async def cleanup_container(container_id: str, isolator: IsolatorDep) -> Response:
    """Release the container's claims.

    Always succeeds for unknown containers; unmount failures are logged only.
    """
    await isolator.cleanup(container_id)
    return Response(status_code=204)


@router.get("/{container_id}/mounts", response_model=ContainerMountsResponse)
async def container_mounts(
    container_id: str,
    isolator: IsolatorDep,
) -> ContainerMountsResponse:
    return ContainerMountsResponse(
        container_id=container_id,
        mounts=[
            MountResponse(
                volume_driver=m.volume_driver,
                volume_name=m.volume_name,
                mount_point=m.mount_point,
                options=m.options,
                container_path=m.container_path,
            )
            for m in isolator.registry.claims(container_id)
        ],
    )
