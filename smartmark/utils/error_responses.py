"""Helper functions for constructing structured API error responses.

Every exception handler in :mod:`smartmark.main` funnels through these
builders so that payloads share one shape: the short ``error`` message, the
error category, the request ID and a timezone-aware timestamp.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from fastapi import status
from fastapi.responses import JSONResponse

from smartmark.schemas.error import (
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from smartmark.utils.request_context import get_request_id

__all__ = [
    "STATUS_ERROR_TYPES",
    "build_error_response",
    "build_validation_error_response",
    "error_json_response",
]

# Maps the HTTP status of an ``HTTPException`` onto the error taxonomy.
STATUS_ERROR_TYPES: dict[int, ErrorType] = {
    status.HTTP_400_BAD_REQUEST: ErrorType.VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: ErrorType.AUTHENTICATION_ERROR,
    status.HTTP_403_FORBIDDEN: ErrorType.AUTHORIZATION_ERROR,
    status.HTTP_404_NOT_FOUND: ErrorType.NOT_FOUND,
    status.HTTP_503_SERVICE_UNAVAILABLE: ErrorType.NETWORK_ERROR,
    status.HTTP_504_GATEWAY_TIMEOUT: ErrorType.TIMEOUT_ERROR,
}


def _current_timestamp() -> datetime:
    """Return a timezone-aware timestamp for error payloads."""

    return datetime.now(UTC)


def build_validation_error_response(
    *,
    errors: Sequence[ValidationErrorDetail],
    error: str,
    message: str,
    detail: str,
    status_code: int,
    path: str,
    request_id: str | None = None,
) -> ValidationErrorResponse:
    """Construct a ``ValidationErrorResponse`` enriched with metadata."""

    return ValidationErrorResponse(
        error=error,
        error_type=ErrorType.VALIDATION_ERROR,
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        request_id=request_id or get_request_id(),
        path=path,
        errors=list(errors),
    )


def build_error_response(
    *,
    error_type: ErrorType,
    error: str,
    message: str,
    detail: str | None,
    status_code: int,
    path: str,
    retry_after: int | None = None,
    request_id: str | None = None,
) -> ErrorResponse:
    """Construct a generic ``ErrorResponse`` enriched with metadata.

    ``retry_after`` stays optional so call sites can omit it for
    non-retryable failures such as ownership violations.
    """

    return ErrorResponse(
        error=error,
        error_type=error_type,
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        request_id=request_id or get_request_id(),
        path=path,
        retry_after=retry_after,
    )


def error_json_response(payload: ErrorResponse) -> JSONResponse:
    """Serialise ``payload`` using its own status code."""

    return JSONResponse(
        status_code=payload.status_code,
        content=payload.model_dump(mode="json"),
    )
