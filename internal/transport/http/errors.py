"""
Mapping of domain errors to HTTP errors.
"""
from fastapi import HTTPException, status

from internal.domain.errors import (
    ConflictError,
    DomainError,
    DomainValidationError,
    PermissionDeniedError,
    ProductNotFoundError,
)
from pkg.logger.logger import get_logger

logger = get_logger(__name__)


_STATUS_BY_ERROR = (
    (DomainValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ProductNotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
)


def to_http_error(error: DomainError) -> HTTPException:
    """
    Translate a domain error into an HTTPException.

    Args:
        error: Raised domain error.

    Returns:
        HTTPException with the matching status code (500 if unmapped).
    """
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            logger.warning(
                "Request rejected",
                error_type=type(error).__name__,
                error=error.message,
                status_code=status_code,
            )
            return HTTPException(status_code=status_code, detail=error.message)

    logger.error("Unhandled domain error", error_type=type(error).__name__, error=error.message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )
