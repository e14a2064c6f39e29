from berth.drivers.dvdcli.dvdcli import DvdcliDriver

__all__ = ["DvdcliDriver"]
