from berth.managers.isolator.isolator import LibstorageIsolator, RecoverResult

__all__ = ["LibstorageIsolator", "RecoverResult"]
