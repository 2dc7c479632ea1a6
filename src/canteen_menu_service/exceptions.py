"""Exception hierarchy for the canteen menu service.

Every error raised across the service derives from CanteenError so the API
layer can normalize it into a single response shape. Repositories translate
backend-specific failures (botocore ClientError, httpx errors) into these
types before they leave the storage layer.
"""

from dataclasses import asdict, dataclass
from typing import Any


class CanteenError(Exception):
    """Base class for all service errors."""

    status_code = 400
    default_code = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


@dataclass(frozen=True)
class FieldError:
    """A single field-scoped validation failure."""

    field: str
    message: str


class ValidationError(CanteenError):
    """Input failed validation. Carries every field error; the first one is the message."""

    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, errors: list[FieldError]) -> None:
        if not errors:
            raise ValueError("ValidationError requires at least one field error")
        self.errors = errors
        super().__init__(errors[0].message, details={"errors": [asdict(e) for e in errors]})

    @property
    def field(self) -> str:
        return self.errors[0].field


class AuthenticationError(CanteenError):
    """Credentials or session are missing or invalid."""

    status_code = 401
    default_code = "AUTHENTICATION_REQUIRED"


class AuthorizationError(CanteenError):
    """The authenticated role is not allowed to perform the operation."""

    status_code = 403
    default_code = "AUTHORIZATION_DENIED"


class PermissionDeniedError(CanteenError):
    """The backend refused the request (distinct from an empty result set)."""

    status_code = 403
    default_code = "BACKEND_PERMISSION_DENIED"


class NotFoundError(CanteenError):
    """The referenced record does not exist (usually a stale id)."""

    status_code = 404
    default_code = "RESOURCE_NOT_FOUND"


class ConflictError(CanteenError):
    """The record already exists."""

    status_code = 409
    default_code = "DUPLICATE_RESOURCE"


class BackendUnavailableError(CanteenError):
    """Transient backend failure. Reported to the caller, never retried automatically."""

    status_code = 503
    default_code = "BACKEND_UNAVAILABLE"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details={"retryable": True, **(details or {})})
