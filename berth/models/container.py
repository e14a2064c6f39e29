"""Agent-facing container shapes.

Only the fields Berth consumes or produces are modelled here; the agent's
full container protocol stays with the agent.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class EnvironmentVariable(BaseModel):
    """One entry of a task's environment."""

    name: str
    value: str = ""


class ContainerConfig(BaseModel):
    """Per-container configuration handed to prepare."""

    environment: list[EnvironmentVariable] = Field(default_factory=list)


class ContainerState(BaseModel):
    """A container the agent still knows about after restart."""

    container_id: str
    pid: int | None = None
    directory: str | None = None


class BindMount(BaseModel):
    """Host mount exposed inside the container."""

    source: str
    target: str


class ContainerLaunchInfo(BaseModel):
    """What the agent must set up before launching the container."""

    mounts: list[BindMount] = Field(default_factory=list)


class ContainerLimitation(BaseModel):
    """Resource limitation raised while watching a container."""

    reason: str
    message: str | None = None


class ResourceStatistics(BaseModel):
    """Usage sample; Berth collects none beyond the timestamp."""

    timestamp: datetime
    extra: dict[str, Any] = Field(default_factory=dict)
