"""
Typed domain errors.

Every business-rule violation is raised as one of a closed set of error
types. The web layer maps the type (not the message text) to an HTTP
status, and each type carries the machine-readable hints returned to
clients in the response envelope.

Design Decisions:
- Subclasses of a single DomainError so use cases can tell expected
  failures apart from programming errors
- code / next_step / recommendation are class attributes, overridable
  per instance when a call site knows better
- Conflict subtypes share a status but keep distinct codes
"""

from typing import Any


class DomainError(Exception):
    """Base class for all expected business failures."""

    code = "DOMAIN_ERROR"
    next_step = "RETRY_LATER"
    recommendation = "Please try again later or contact support"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class InvalidInputError(DomainError):
    """Malformed or missing input, rejected before any state changes."""

    code = "INVALID_INPUT"
    next_step = "FIX_INPUT"
    recommendation = "Please check your input data"


class NotFoundError(DomainError):
    """A referenced entity does not exist."""

    code = "NOT_FOUND"
    next_step = "CHECK_ID"
    recommendation = "Verify the ID and try again"


class ConflictError(DomainError):
    """The request is valid but clashes with the current state."""

    code = "CONFLICT"
    next_step = "CHECK_STATUS"
    recommendation = "Refresh the resource and try again"


class DuplicateError(ConflictError):
    code = "DUPLICATE"


class InvalidTransitionError(ConflictError):
    """A status change that the guard table does not allow."""

    code = "INVALID_TRANSITION"


class ProductUnavailableError(ConflictError):
    code = "PRODUCT_UNAVAILABLE"
    next_step = "REFRESH_PRODUCTS"
    recommendation = "Try a different product or check availability"


class InsufficientStockError(ConflictError):
    code = "INSUFFICIENT_STOCK"
    next_step = "REFRESH_PRODUCTS"
    recommendation = "Try a different product or check availability"


class PaymentProviderError(DomainError):
    """
    The payment gateway could not be reached or rejected a setup call.

    Carries the HTTP status and body returned by the gateway, when any.
    """

    code = "PAYMENT_PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: Any = None,
    ) -> None:
        super().__init__(
            message,
            details={"status_code": status_code, "response_body": response_body},
        )
        self.status_code = status_code
        self.response_body = response_body


class InternalError(DomainError):
    """Unexpected failure wrapped by a use case."""

    code = "INTERNAL_ERROR"
