"""Normalization of errors into the API's error response shape."""

import logging
from typing import Any

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from canteen_menu_service.exceptions import CanteenError
from canteen_menu_service.observability.metrics import record_api_error

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class ErrorResponse(BaseModel):
    """Body of every error response.

    Attributes:
        success: Always False
        error_code: Stable machine-readable code (e.g., "VALIDATION_ERROR")
        message: User-facing message, safe to show as-is
        details: Structured extras such as field errors or a retryable flag
    """

    success: bool = False
    error_code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorService:
    """Turns exceptions into ErrorResponses and logs them.

    Domain errors keep their own status and message. Anything unexpected is
    logged with its traceback and answered with a generic 500, so no request
    can crash the service.
    """

    def from_canteen_error(self, error: CanteenError, path: str = "") -> tuple[int, ErrorResponse]:
        """Normalize a domain error.

        Args:
            error: The raised CanteenError
            path: Request path, for the log line

        Returns:
            Tuple of HTTP status code and response body
        """
        if error.status_code >= 500:
            logger.error(f"{error.error_code} on {path}: {error.message}")
        else:
            logger.info(f"{error.error_code} on {path}: {error.message}")

        record_api_error(error.error_code, error.status_code)
        return error.status_code, ErrorResponse(
            error_code=error.error_code, message=error.message, details=error.details
        )

    def from_request_validation(
        self, error: RequestValidationError, path: str = ""
    ) -> tuple[int, ErrorResponse]:
        """Normalize FastAPI's own request parsing errors (path/query/body shape)."""
        errors = [
            {
                "field": ".".join(str(part) for part in e.get("loc", ()) if part not in ("body", "query", "path")),
                "message": e.get("msg", "Invalid value"),
            }
            for e in error.errors()
        ]
        message = errors[0]["message"] if errors else "Invalid request"
        logger.info(f"VALIDATION_ERROR on {path}: {message}")

        record_api_error("VALIDATION_ERROR", 400)
        return 400, ErrorResponse(
            error_code="VALIDATION_ERROR", message=message, details={"errors": errors}
        )

    def from_unexpected(self, error: Exception, path: str = "") -> tuple[int, ErrorResponse]:
        """Normalize an exception nothing else handled."""
        logger.exception(f"Unhandled {type(error).__name__} on {path}")

        record_api_error("INTERNAL_ERROR", 500)
        return 500, ErrorResponse(
            error_code="INTERNAL_ERROR",
            message=GENERIC_FAILURE_MESSAGE,
            details={"error_type": type(error).__name__},
        )

    @staticmethod
    def to_json_response(status_code: int, body: ErrorResponse) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
