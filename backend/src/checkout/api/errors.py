"""
Exception handlers that turn every failure into the response envelope.

The HTTP status is chosen by error type through STATUS_BY_ERROR; the
message text plays no part in it.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from checkout.api.responses import failure
from checkout.domain.errors import (
    ConflictError,
    DomainError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    PaymentProviderError,
)

logger = logging.getLogger(__name__)


# Most specific type wins (looked up along the MRO)
STATUS_BY_ERROR: dict[type[DomainError], int] = {
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    PaymentProviderError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: Exception) -> int:
    """HTTP status for an error; unknown types map to 500."""
    for error_type in type(error).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _envelope(status_code: int, body) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Install the envelope-producing handlers on an app."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        status_code = status_for(exc)
        message = exc.message
        details = exc.details

        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc}")
            if not debug:
                details = None
                if isinstance(exc, InternalError):
                    message = "An internal error occurred"
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}: {exc}")

        return _envelope(status_code, failure(
            message,
            exc.code,
            details=details,
            next_step=exc.next_step,
            recommendation=exc.recommendation,
        ))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        logger.warning(f"{request.method} {request.url.path} invalid request: {fields}")

        return _envelope(status.HTTP_400_BAD_REQUEST, failure(
            "Invalid request data",
            "VALIDATION_ERROR",
            details={"fields": fields},
            next_step="FIX_INPUT",
            recommendation="Please check your data and try again",
        ))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")

        # Don't expose internal errors in production
        message = str(exc) if debug else "An unexpected error occurred"

        return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, failure(
            message,
            "INTERNAL_ERROR",
            next_step="CONTACT_SUPPORT",
            recommendation="Please contact support if this problem persists",
        ))
