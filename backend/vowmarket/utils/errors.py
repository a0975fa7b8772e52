from typing import Dict
from fastapi import HTTPException, status
import logging

from ..services.exceptions import (
    AggregateConflict,
    AuthenticationFailed,
    BookingAccessDenied,
    Inconsistency,
    InvalidTransition,
    MarketplaceError,
    NotFound,
    PaymentFailed,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
_STATUS_BY_ERROR = (
    (AuthenticationFailed, status.HTTP_401_UNAUTHORIZED),
    (BookingAccessDenied, status.HTTP_403_FORBIDDEN),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (PaymentFailed, status.HTTP_402_PAYMENT_REQUIRED),
    (AggregateConflict, status.HTTP_503_SERVICE_UNAVAILABLE),
    (Inconsistency, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


def status_for(exc: MarketplaceError) -> int:
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return code
    return status.HTTP_400_BAD_REQUEST


def domain_error_response(exc: MarketplaceError) -> HTTPException:
    """Translate a service-layer error into the API error shape."""
    return error_response(exc.message, exc.field_errors, status_for(exc))
