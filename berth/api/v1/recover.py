"""Agent recovery endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from berth.api.dependencies import IsolatorDep
from berth.models.container import ContainerState

router = APIRouter()


class RecoverRequest(BaseModel):
    """Containers the agent still knows about after restarting."""

    containers: list[ContainerState] = Field(default_factory=list)
    orphans: list[str] = Field(default_factory=list)


class StaleMountResponse(BaseModel):
    volume_driver: str
    volume_name: str


class RecoverResponse(BaseModel):
    recovered: list[str]
    dropped: list[str]
    stale_mounts: list[StaleMountResponse]


@router.post("/recover", response_model=RecoverResponse)
async def recover(request: RecoverRequest, isolator: IsolatorDep) -> RecoverResponse:
    """Reconcile persisted claims with the agent's live and orphan containers.

    Claims of unknown containers are dropped; their volumes stay mounted.
    """
    result = await isolator.recover(request.containers, request.orphans)
    return RecoverResponse(
        recovered=result.recovered,
        dropped=result.dropped,
        stale_mounts=[
            StaleMountResponse(volume_driver=i.driver, volume_name=i.name)
            for i in result.stale_mounts
        ],
    )
