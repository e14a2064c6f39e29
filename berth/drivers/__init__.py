"""Driver layer - external mount tool abstraction."""

from berth.drivers.base import MountDriver
from berth.drivers.dvdcli import DvdcliDriver

__all__ = [
    "DvdcliDriver",
    "MountDriver",
]
