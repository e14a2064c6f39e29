from berth.managers.claims.claims import ClaimRegistry

__all__ = ["ClaimRegistry"]
