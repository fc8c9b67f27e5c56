"""
Input validation rules for checkout requests.

This module contains pure functions that implement request-level
business rules. No side effects, no I/O - each rule returns a Result
that is either empty success or a failure carrying InvalidInputError.

Design Decisions:
- Pure functions enable easy unit testing and composition
- First violated rule wins, so messages stay specific
- Regexes are ASCII-only: a Colombian mobile number is digits 0-9
"""

import re
from collections.abc import Mapping
from typing import Any

from .errors import InvalidInputError
from .result import Result

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# +57 XXX XXX XXXX (3-3-4 grouping, single literal spaces)
PHONE_PATTERN = re.compile(r"^\+57 [0-9]{3} [0-9]{3} [0-9]{4}$")

MIN_NAME_LENGTH = 2

MAX_PAGE_SIZE = 100

ALLOWED_INSTALLMENTS = (1, 3, 6, 9, 12, 18, 24, 36)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(phone))


def _invalid(message: str) -> Result[None]:
    return Result.failure(InvalidInputError(message))


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_pagination(limit: int | None, offset: int | None) -> Result[None]:
    """
    Validate product listing bounds.

    Rule: 1 <= limit <= 100 when given, offset >= 0 when given.
    """
    if limit is not None and limit < 1:
        return _invalid("Limit must be greater than 0")

    if offset is not None and offset < 0:
        return _invalid("Offset must be greater than or equal to 0")

    if limit is not None and limit > MAX_PAGE_SIZE:
        return _invalid(f"Limit cannot exceed {MAX_PAGE_SIZE} items")

    return Result.success()


def validate_positive_id(value: int | None, label: str) -> Result[None]:
    if not value or value <= 0:
        return _invalid(f"Valid {label} ID is required")
    return Result.success()


def validate_checkout_request(
    customer: Mapping[str, Any],
    product_id: int | None,
    quantity: int | None,
    delivery: Mapping[str, Any],
) -> Result[None]:
    """
    Validate the shape of a create-transaction request.

    Deeper rules (email format, phone format, stock) are enforced by the
    entities themselves once the request is known to be complete.
    """
    for field_name in ("name", "email", "phone"):
        if _blank(customer.get(field_name)):
            return _invalid(f"Customer {field_name} is required")

    product_check = validate_positive_id(product_id, "product")
    if product_check.is_failure:
        return product_check

    if quantity is not None and quantity <= 0:
        return _invalid("Quantity must be greater than 0")

    for field_name in ("address", "city", "phone"):
        if _blank(delivery.get(field_name)):
            return _invalid(f"Delivery {field_name} is required")

    return Result.success()


def validate_installments(installments: int | None) -> Result[None]:
    if installments is None:
        return Result.success()

    if installments < 1:
        return _invalid("Installments must be a positive number")

    if installments not in ALLOWED_INSTALLMENTS:
        allowed = ", ".join(str(i) for i in ALLOWED_INSTALLMENTS)
        return _invalid(f"Invalid installments. Allowed values: {allowed}")

    return Result.success()


def validate_card_input(
    card_number: str | None,
    card_cvc: str | None,
    card_exp_month: str | None,
    card_exp_year: str | None,
    card_holder: str | None,
) -> Result[None]:
    """Every card field must be present and non-blank."""
    fields = [
        (card_number, "Card number is required"),
        (card_cvc, "Card CVC is required"),
        (card_exp_month, "Card expiration month is required"),
        (card_exp_year, "Card expiration year is required"),
        (card_holder, "Card holder name is required"),
    ]
    for value, message in fields:
        if _blank(value):
            return _invalid(message)
    return Result.success()
