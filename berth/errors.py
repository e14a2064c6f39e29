"""Berth error types.

Error codes are stable strings for programmatic handling by the agent shim.
"""

from __future__ import annotations

from typing import Any


class BerthError(Exception):
    """Base error for all Berth exceptions."""

    code: str = "internal_error"
    message: str = "An internal error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        """Render the error as an API response body."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "request_id": request_id,
                "details": self.details,
            }
        }


class InvalidInputError(BerthError):
    """Malformed or injection-bearing volume configuration (400)."""

    code = "invalid_input"
    message = "Invalid volume configuration"
    status_code = 400


class ConflictError(BerthError):
    """Container already holds claims (409)."""

    code = "conflict"
    message = "Conflict"
    status_code = 409


class ExternalToolError(BerthError):
    """Mount/unmount tool exited non-zero, timed out, or could not run (502)."""

    code = "external_tool_failure"
    message = "External volume tool failed"
    status_code = 502

    def __init__(
        self,
        message: str | None = None,
        *,
        exit_code: int | None = None,
        output: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.exit_code = exit_code
        self.output = output
        merged = {"exit_code": exit_code, "output": output}
        merged.update(details or {})
        super().__init__(message, details=merged)


class PersistenceError(BerthError):
    """Claim snapshot could not be written or read (500)."""

    code = "persistence_failure"
    message = "Claim snapshot persistence failed"
    status_code = 500
