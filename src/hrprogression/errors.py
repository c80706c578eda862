"""Error taxonomy shared by every component.

``status_code`` mirrors the HTTP status an API layer would map the error to.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "status": self.status_code}
        if self.details:
            payload["details"] = self.details
        return payload


class RequestValidationError(PipelineError):
    """Missing or malformed input; never retried."""

    status_code = 400


class InvalidTransitionError(RequestValidationError):
    """Pipeline status change not permitted from the current state."""


class NotFoundError(PipelineError):
    """Candidate, evaluator, round or assignment is absent."""

    status_code = 404


class AuthorizationError(PipelineError):
    """Actor role does not permit the operation; no state was changed."""

    status_code = 403


class OracleError(PipelineError):
    """Evaluation oracle failed or answered with unusable output.

    Recovered locally by the scoring engine; never reaches the caller.
    """

    status_code = 502


class StoreError(PipelineError):
    """Document store read or write failed."""


class ConcurrentModificationError(StoreError):
    """Document changed since it was loaded."""

    status_code = 409


class ConsistencyWarning(PipelineError):
    """Cross-reference between aggregates missing during cleanup.

    Raised by roster helpers and logged by the caller; the primary write has
    already succeeded, so the operation still reports success.
    """

    status_code = 200


__all__ = [
    "PipelineError",
    "RequestValidationError",
    "InvalidTransitionError",
    "NotFoundError",
    "AuthorizationError",
    "OracleError",
    "StoreError",
    "ConcurrentModificationError",
    "ConsistencyWarning",
]
