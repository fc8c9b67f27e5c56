"""
Ports the domain depends on: repositories and the payment gateway.

Use cases only see these abstract interfaces; the SQLAlchemy
repositories and the gateway adapter implement them, and tests swap in
in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from .models import Customer, Delivery, DeliveryStatus, Product, utc_now
from .transaction import CardBrand, Transaction, TransactionStatus


class ProductRepository(ABC):
    """Read access to the catalog plus stock updates."""

    @abstractmethod
    async def find_all(self) -> list[Product]:
        pass

    @abstractmethod
    async def find_available(self) -> list[Product]:
        """Active products with stock > 0."""
        pass

    @abstractmethod
    async def find_by_id(self, product_id: int) -> Product | None:
        pass

    @abstractmethod
    async def save(self, product: Product) -> Product:
        """Insert when id == 0, update otherwise. Returns the stored product."""
        pass

    @abstractmethod
    async def update_stock(self, product_id: int, new_stock: int) -> Product:
        pass


class CustomerRepository(ABC):

    @abstractmethod
    async def find_by_id(self, customer_id: int) -> Customer | None:
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Customer | None:
        pass

    @abstractmethod
    async def save(self, customer: Customer) -> Customer:
        pass


class TransactionRepository(ABC):

    @abstractmethod
    async def find_all(self) -> list[Transaction]:
        """All transactions, newest first."""
        pass

    @abstractmethod
    async def find_by_id(self, transaction_id: int) -> Transaction | None:
        pass

    @abstractmethod
    async def find_by_status(self, status: TransactionStatus) -> list[Transaction]:
        pass

    @abstractmethod
    async def find_by_provider_reference(self, reference: str) -> Transaction | None:
        pass

    @abstractmethod
    async def save(self, transaction: Transaction) -> Transaction:
        """Insert a new transaction. Returns it with its assigned id."""
        pass

    @abstractmethod
    async def update(self, transaction: Transaction) -> Transaction:
        pass


class DeliveryRepository(ABC):

    @abstractmethod
    async def find_by_transaction_id(self, transaction_id: int) -> Delivery | None:
        pass

    @abstractmethod
    async def find_by_status(self, status: DeliveryStatus) -> list[Delivery]:
        pass

    @abstractmethod
    async def save(self, delivery: Delivery) -> Delivery:
        pass


class PaymentStatus(Enum):
    """Payment outcome as reported by the gateway."""
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    PENDING = "PENDING"
    ERROR = "ERROR"
    VOIDED = "VOIDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class PaymentRequest:
    """Everything needed to charge a card for one transaction."""
    transaction_id: int
    amount: Decimal
    currency: str
    customer_email: str
    card_number: str
    card_cvc: str
    card_exp_month: str
    card_exp_year: str
    card_holder: str
    card_brand: CardBrand
    installments: int = 1

    def __repr__(self) -> str:
        # Card number and CVC must never reach logs
        return (
            f"PaymentRequest(transaction_id={self.transaction_id}, amount={self.amount}, "
            f"currency={self.currency!r}, card=****{self.card_number[-4:]}, "
            f"installments={self.installments})"
        )


@dataclass(frozen=True)
class PaymentResult:
    """Domain view of a gateway transaction."""
    success: bool
    provider_transaction_id: str
    reference: str
    status: PaymentStatus
    message: str
    processed_at: datetime = field(default_factory=utc_now)
    amount: Decimal | None = None
    currency: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_approved(self) -> bool:
        return self.success and self.status is PaymentStatus.APPROVED


class PaymentGateway(ABC):
    """Charges cards and reports payment status."""

    @abstractmethod
    async def process_payment(self, request: PaymentRequest) -> PaymentResult:
        pass

    @abstractmethod
    async def get_payment_status(self, provider_transaction_id: str) -> PaymentResult:
        pass

    @abstractmethod
    def generate_reference(self, transaction_id: int) -> str:
        pass

    @abstractmethod
    async def get_acceptance_token_info(self) -> dict[str, str]:
        pass
