"""Driver base class - external mount tool abstraction.

Driver is responsible ONLY for invoking the host's volume tooling.
It does NOT handle:
- Claim bookkeeping or reference counting
- Rollback of partially prepared containers
- Persistence

Every call is synchronous from the caller's point of view: it returns once
the external tool has exited (or been killed on timeout).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from berth.models.mount import ExternalMount


class MountDriver(ABC):
    """Abstract interface to the host-level mount/unmount tool."""

    @abstractmethod
    async def mount(self, mount: ExternalMount) -> str:
        """Mount an external volume on the host.

        Args:
            mount: Claim describing the volume, driver and options

        Returns:
            Host path where the volume is mounted

        Raises:
            ExternalToolError: If the tool fails, times out or cannot run
        """
        ...

    @abstractmethod
    async def unmount(self, mount: ExternalMount) -> None:
        """Unmount an external volume from the host.

        Args:
            mount: Claim describing the volume

        Raises:
            ExternalToolError: If the tool fails, times out or cannot run
        """
        ...
