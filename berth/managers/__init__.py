"""Manager layer - claim bookkeeping and volume lifecycle."""

from berth.managers.claims import ClaimRegistry
from berth.managers.isolator import LibstorageIsolator, RecoverResult

__all__ = ["ClaimRegistry", "LibstorageIsolator", "RecoverResult"]
