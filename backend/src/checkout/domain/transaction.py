"""
Transaction entity and its status state machine.

A transaction is created PENDING at checkout and moves to COMPLETED or
FAILED as the payment gateway reports outcomes. Both are terminal.

    PENDING --COMPLETE-----> COMPLETED
    PENDING --FAIL---------> FAILED
    PENDING --KEEP_PENDING-> PENDING   (re-mark with provider info)

Design Decisions:
- The guard table is data (TRANSITIONS), and apply_transition() is a
  pure (status, event) -> Result function over it
- Entity methods unwrap that Result and raise InvalidTransitionError,
  naming the transaction id and current status
- Frozen dataclass: every transition returns a new value and carries
  unrelated fields forward
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from .errors import InvalidInputError, InvalidTransitionError
from .models import utc_now
from .money import amounts_match, format_cop, to_decimal
from .result import Result


class TransactionStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TransactionEvent(Enum):
    """Things that can happen to a transaction."""
    COMPLETE = "complete"
    FAIL = "fail"
    KEEP_PENDING = "keep_pending"


class PaymentMethod(Enum):
    CREDIT_CARD = "CREDIT_CARD"


class CardBrand(Enum):
    VISA = "VISA"
    MASTERCARD = "MASTERCARD"


# Guard table: (current status, event) -> next status
TRANSITIONS: dict[tuple[TransactionStatus, TransactionEvent], TransactionStatus] = {
    (TransactionStatus.PENDING, TransactionEvent.COMPLETE): TransactionStatus.COMPLETED,
    (TransactionStatus.PENDING, TransactionEvent.FAIL): TransactionStatus.FAILED,
    (TransactionStatus.PENDING, TransactionEvent.KEEP_PENDING): TransactionStatus.PENDING,
}

# Wording used in the error raised for a rejected event
_EVENT_VERBS = {
    TransactionEvent.COMPLETE: "completed",
    TransactionEvent.FAIL: "failed",
    TransactionEvent.KEEP_PENDING: "marked as pending",
}


def apply_transition(
    transaction_id: int,
    status: TransactionStatus,
    event: TransactionEvent,
) -> Result[TransactionStatus]:
    """
    Look up the next status for an event.

    Returns:
        Result with the next status, or a failure carrying
        InvalidTransitionError when the guard table has no entry.
    """
    next_status = TRANSITIONS.get((status, event))
    if next_status is None:
        return Result.failure(InvalidTransitionError(
            f"Transaction {transaction_id} cannot be {_EVENT_VERBS[event]}. "
            f"Current status: {status.value}",
            details={"transaction_id": transaction_id, "status": status.value},
        ))
    return Result.success(next_status)


def card_brand_for(card_number: str) -> CardBrand:
    """Cards starting with 4 are VISA; everything else is treated as MASTERCARD."""
    return CardBrand.VISA if card_number.strip().startswith("4") else CardBrand.MASTERCARD


@dataclass(frozen=True)
class Transaction:
    """
    A checkout transaction.

    Amounts are in pesos. total_amount is fixed at creation and must stay
    within AMOUNT_TOLERANCE of product_amount + base_fee + delivery_fee.
    """
    id: int
    customer_id: int
    product_id: int
    product_amount: Decimal
    base_fee: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    status: TransactionStatus = TransactionStatus.PENDING
    provider_transaction_id: str | None = None
    provider_reference: str | None = None
    payment_method: PaymentMethod | None = PaymentMethod.CREDIT_CARD
    card_last_four: str | None = None
    card_brand: CardBrand | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    # -- status queries -----------------------------------------------------

    def is_pending(self) -> bool:
        return self.status is TransactionStatus.PENDING

    def is_completed(self) -> bool:
        return self.status is TransactionStatus.COMPLETED

    def is_failed(self) -> bool:
        return self.status is TransactionStatus.FAILED

    def can_be_processed(self) -> bool:
        return self.is_pending()

    # -- amounts ------------------------------------------------------------

    def calculate_total(self) -> Decimal:
        return self.product_amount + self.base_fee + self.delivery_fee

    def is_amount_valid(self) -> bool:
        return amounts_match(self.total_amount, self.calculate_total())

    def formatted_amount(self) -> str:
        return format_cop(self.total_amount)

    # -- transitions --------------------------------------------------------

    def _next_status(self, event: TransactionEvent) -> TransactionStatus:
        return apply_transition(self.id, self.status, event).unwrap()

    def mark_as_completed(
        self,
        provider_transaction_id: str,
        provider_reference: str,
    ) -> "Transaction":
        status = self._next_status(TransactionEvent.COMPLETE)
        now = utc_now()
        return replace(
            self,
            status=status,
            provider_transaction_id=provider_transaction_id,
            provider_reference=provider_reference,
            updated_at=now,
            completed_at=now,
        )

    def mark_as_failed(self) -> "Transaction":
        status = self._next_status(TransactionEvent.FAIL)
        return replace(self, status=status, updated_at=utc_now(), completed_at=None)

    def mark_as_pending(
        self,
        provider_transaction_id: str | None = None,
        provider_reference: str | None = None,
    ) -> "Transaction":
        """Stay PENDING, recording provider info when given."""
        status = self._next_status(TransactionEvent.KEEP_PENDING)
        return replace(
            self,
            status=status,
            provider_transaction_id=provider_transaction_id or self.provider_transaction_id,
            provider_reference=provider_reference or self.provider_reference,
            updated_at=utc_now(),
            completed_at=None,
        )

    def update_provider_info(
        self,
        provider_transaction_id: str,
        provider_reference: str,
    ) -> "Transaction":
        """Record provider ids without touching status or completed_at."""
        return replace(
            self,
            provider_transaction_id=provider_transaction_id,
            provider_reference=provider_reference,
            updated_at=utc_now(),
        )

    def with_card_details(self, card_last_four: str, card_brand: CardBrand) -> "Transaction":
        return replace(
            self,
            card_last_four=card_last_four,
            card_brand=card_brand,
            updated_at=utc_now(),
        )

    # -- factories ----------------------------------------------------------

    @classmethod
    def create(
        cls,
        customer_id: int,
        product_id: int,
        product_amount: Decimal | int,
        base_fee: Decimal | int,
        delivery_fee: Decimal | int,
        payment_method: PaymentMethod | None = PaymentMethod.CREDIT_CARD,
        card_last_four: str | None = None,
        card_brand: CardBrand | None = None,
    ) -> "Transaction":
        product_amount = to_decimal(product_amount)
        base_fee = to_decimal(base_fee)
        delivery_fee = to_decimal(delivery_fee)

        if product_amount <= 0:
            raise InvalidInputError("Product amount must be greater than 0")
        if base_fee < 0:
            raise InvalidInputError("Base fee cannot be negative")
        if delivery_fee < 0:
            raise InvalidInputError("Delivery fee cannot be negative")

        return cls(
            id=0,
            customer_id=customer_id,
            product_id=product_id,
            product_amount=product_amount,
            base_fee=base_fee,
            delivery_fee=delivery_fee,
            total_amount=product_amount + base_fee + delivery_fee,
            payment_method=payment_method,
            card_last_four=card_last_four,
            card_brand=card_brand,
        )

    @classmethod
    def from_persistence(cls, row: Mapping[str, Any]) -> "Transaction":
        """
        Rebuild a transaction from stored primitives.

        Status and enum columns are stored by name; optional keys may be
        missing or None.
        """
        payment_method = row.get("payment_method")
        card_brand = row.get("card_brand")
        now = utc_now()
        return cls(
            id=row["id"],
            customer_id=row["customer_id"],
            product_id=row["product_id"],
            product_amount=to_decimal(row["product_amount"]),
            base_fee=to_decimal(row["base_fee"]),
            delivery_fee=to_decimal(row["delivery_fee"]),
            total_amount=to_decimal(row["total_amount"]),
            status=TransactionStatus(row["status"]),
            provider_transaction_id=row.get("provider_transaction_id"),
            provider_reference=row.get("provider_reference"),
            payment_method=PaymentMethod(payment_method) if payment_method else None,
            card_last_four=row.get("card_last_four"),
            card_brand=CardBrand(card_brand) if card_brand else None,
            created_at=row.get("created_at") or now,
            updated_at=row.get("updated_at") or now,
            completed_at=row.get("completed_at"),
        )

    # -- serialization ------------------------------------------------------

    def to_primitive(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "product_amount": self.product_amount,
            "base_fee": self.base_fee,
            "delivery_fee": self.delivery_fee,
            "total_amount": self.total_amount,
            "formatted_amount": self.formatted_amount(),
            "status": self.status.value,
            "provider_transaction_id": self.provider_transaction_id,
            "provider_reference": self.provider_reference,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "card_last_four": self.card_last_four,
            "card_brand": self.card_brand.value if self.card_brand else None,
            "is_pending": self.is_pending(),
            "is_completed": self.is_completed(),
            "is_failed": self.is_failed(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "completed_at": self.completed_at,
        }
