"""Translation of botocore failures into service errors."""

import logging

from botocore.exceptions import BotoCoreError, ClientError

from canteen_menu_service.exceptions import (
    BackendUnavailableError,
    CanteenError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

_PERMISSION_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "NotAuthorizedException",
}


def error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def translate_backend_error(error: ClientError | BotoCoreError, operation: str) -> CanteenError:
    """Map a botocore error to PermissionDeniedError or BackendUnavailableError.

    Args:
        error: The botocore exception
        operation: Human-readable operation name for logs and messages

    Returns:
        CanteenError: The service error to raise in its place
    """
    if isinstance(error, ClientError) and error_code(error) in _PERMISSION_CODES:
        logger.error(f"Backend denied {operation}: {error}")
        return PermissionDeniedError(
            f"The catalog backend refused to {operation}",
            details={"backend_code": error_code(error)},
        )

    logger.error(f"Backend failure during {operation}: {error}")
    details = {"backend_code": error_code(error)} if isinstance(error, ClientError) else {}
    return BackendUnavailableError(
        f"The catalog backend is unavailable, could not {operation}", details=details
    )
