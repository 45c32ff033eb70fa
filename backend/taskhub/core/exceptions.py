"""Application exceptions.

Each error maps to one HTTP status code and is rendered into the standard
response envelope by the handlers registered in ``taskhub.main``.
"""

from dataclasses import dataclass
from uuid import UUID


class AppError(Exception):
    """Base exception for errors surfaced to API clients."""

    status_code: int = 500
    code: str = "UNEXPECTED_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Missing or malformed input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    """Missing, malformed or expired credentials."""

    status_code = 401
    code = "AUTHENTICATION_ERROR"


class AuthorizationError(AppError):
    """Role lacks the permission, or the request crosses a tenant boundary."""

    status_code = 403
    code = "AUTHORIZATION_ERROR"


class NotFoundError(AppError):
    """Entity absent or not visible from the caller's organization."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    """Unique constraint violation."""

    status_code = 409
    code = "CONFLICT"


@dataclass(frozen=True)
class SideEffectOutcome:
    """Result of a best-effort side effect (audit entry, notification).

    A failed outcome is the SideEffectFailure case: it is logged where it
    happens and handed back to the caller instead of being raised.
    """

    effect: str
    succeeded: bool
    record_id: UUID | None = None
    error: str | None = None
    skipped: bool = False

    @classmethod
    def ok(cls, effect: str, record_id: UUID | None = None) -> "SideEffectOutcome":
        return cls(effect=effect, succeeded=True, record_id=record_id)

    @classmethod
    def skip(cls, effect: str, reason: str) -> "SideEffectOutcome":
        return cls(effect=effect, succeeded=True, skipped=True, error=reason)

    @classmethod
    def failure(cls, effect: str, error: BaseException) -> "SideEffectOutcome":
        return cls(effect=effect, succeeded=False, error=f"{type(error).__name__}: {error}")
