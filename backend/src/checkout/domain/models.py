"""
Domain models for the checkout flow.

These models represent the core business entities: the customer placing
an order, the product being bought and the delivery that ships it. The
transaction state machine lives in its own module (transaction.py).

Design Decisions:
- Frozen dataclasses: every "mutation" returns a new value
- id == 0 means "not persisted yet"; the database assigns real ids
- from_persistence() trusts stored rows and skips validation
- Decimal for all monetary values to avoid floating-point errors
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from .errors import InsufficientStockError, InvalidInputError, InvalidTransitionError
from .money import to_decimal
from .validation import MIN_NAME_LENGTH, is_valid_email, is_valid_phone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryStatus(Enum):
    """Lifecycle of a shipment."""
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    DELIVERED = "DELIVERED"


# Delivery fee by destination city, in pesos
CITY_DELIVERY_FEES: dict[str, Decimal] = {
    "bogota": Decimal("5000"),
    "medellin": Decimal("7000"),
    "cali": Decimal("8000"),
    "barranquilla": Decimal("10000"),
    "cartagena": Decimal("12000"),
}

DEFAULT_DELIVERY_FEE = Decimal("15000")

# Products above this price (pesos) are flagged as expensive
EXPENSIVE_PRICE_THRESHOLD = Decimal("1000000")


@dataclass(frozen=True)
class Customer:
    """
    The buyer of a transaction.

    Customers are looked up by e-mail at checkout and created on first
    purchase. The e-mail is stored lower-cased so lookups are stable.
    """
    id: int
    name: str
    email: str
    phone: str
    created_at: datetime = field(default_factory=utc_now)

    def is_valid_email(self) -> bool:
        return is_valid_email(self.email)

    def is_valid_phone(self) -> bool:
        """Colombian mobile format: +57 XXX XXX XXXX."""
        return is_valid_phone(self.phone)

    def display_name(self) -> str:
        return self.name.strip()

    def masked_email(self) -> str:
        """
        Hide the interior of the local part.

        juan@example.com -> j**n@example.com. Local parts of two
        characters or fewer are returned unchanged.
        """
        username, _, domain = self.email.partition("@")
        if len(username) <= 2:
            return self.email
        masked = username[0] + "*" * (len(username) - 2) + username[-1]
        return f"{masked}@{domain}"

    @classmethod
    def create(cls, name: str, email: str, phone: str) -> "Customer":
        """
        Build a new customer, normalizing and validating its fields.

        Raises:
            InvalidInputError: naming the first violated rule
        """
        name = name.strip()
        email = email.strip().lower()
        phone = phone.strip()

        if len(name) < MIN_NAME_LENGTH:
            raise InvalidInputError(
                f"Name must be at least {MIN_NAME_LENGTH} characters long"
            )

        if not is_valid_email(email):
            raise InvalidInputError("Invalid email format")

        if not is_valid_phone(phone):
            raise InvalidInputError("Invalid phone format. Use: +57 XXX XXX XXXX")

        return cls(id=0, name=name, email=email, phone=phone)

    @classmethod
    def from_persistence(cls, row: Mapping[str, Any]) -> "Customer":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            created_at=row.get("created_at") or utc_now(),
        )

    def to_primitive(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "masked_email": self.masked_email(),
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Product:
    """
    A catalog item.

    Seeded externally; the checkout only reads products and reduces
    stock after an approved payment.
    """
    id: int
    name: str
    description: str
    price: Decimal
    stock: int
    image_url: str
    base_fee: Decimal
    is_active: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def is_available(self) -> bool:
        return self.is_active and self.stock > 0

    def can_fulfill_quantity(self, quantity: int) -> bool:
        return self.stock >= quantity

    def calculate_total_with_fees(self, quantity: int = 1) -> Decimal:
        return self.price * quantity + self.base_fee

    def is_expensive(self) -> bool:
        return self.price > EXPENSIVE_PRICE_THRESHOLD

    def reduce_stock(self, quantity: int) -> "Product":
        if not self.can_fulfill_quantity(quantity):
            raise InsufficientStockError(
                f"Insufficient stock. Available: {self.stock}, Requested: {quantity}"
            )
        return replace(self, stock=self.stock - quantity, updated_at=utc_now())

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        price: Decimal | int,
        stock: int,
        image_url: str,
        base_fee: Decimal | int,
    ) -> "Product":
        price = to_decimal(price)
        if price <= 0:
            raise InvalidInputError("Product price must be greater than 0")
        if stock < 0:
            raise InvalidInputError("Product stock cannot be negative")
        return cls(
            id=0,
            name=name,
            description=description,
            price=price,
            stock=stock,
            image_url=image_url,
            base_fee=to_decimal(base_fee),
        )

    @classmethod
    def from_persistence(cls, row: Mapping[str, Any]) -> "Product":
        return cls(
            id=row["id"],
            name=row["name"],
            description=row.get("description") or "",
            price=to_decimal(row["price"]),
            stock=row["stock"],
            image_url=row.get("image_url") or "",
            base_fee=to_decimal(row.get("base_fee") or 0),
            is_active=row.get("is_active", True),
            created_at=row.get("created_at") or utc_now(),
            updated_at=row.get("updated_at") or utc_now(),
        )

    def to_primitive(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "stock": self.stock,
            "image_url": self.image_url,
            "base_fee": self.base_fee,
            "is_active": self.is_active,
            "is_available": self.is_available(),
            "total_with_fees": self.calculate_total_with_fees(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class Delivery:
    """
    Shipment attached 1:1 to a transaction.

    The delivery fee is derived from the destination city when the
    delivery is created.
    """
    id: int
    transaction_id: int
    address: str
    city: str
    postal_code: str
    phone: str
    delivery_fee: Decimal
    status: DeliveryStatus = DeliveryStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def is_pending(self) -> bool:
        return self.status is DeliveryStatus.PENDING

    def is_assigned(self) -> bool:
        return self.status is DeliveryStatus.ASSIGNED

    def is_delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED

    def full_address(self) -> str:
        suffix = f" - {self.postal_code}" if self.postal_code else ""
        return f"{self.address}, {self.city}{suffix}"

    @staticmethod
    def fee_for_city(city: str) -> Decimal:
        return CITY_DELIVERY_FEES.get(city.strip().lower(), DEFAULT_DELIVERY_FEE)

    def with_transaction(self, transaction_id: int) -> "Delivery":
        return replace(self, transaction_id=transaction_id)

    def mark_as_assigned(self) -> "Delivery":
        if not self.is_pending():
            raise InvalidTransitionError(
                f"Delivery {self.id} cannot be assigned. Current status: {self.status.value}"
            )
        return replace(self, status=DeliveryStatus.ASSIGNED, updated_at=utc_now())

    def mark_as_delivered(self) -> "Delivery":
        if not self.is_assigned():
            raise InvalidTransitionError(
                f"Delivery {self.id} cannot be delivered. Current status: {self.status.value}"
            )
        return replace(self, status=DeliveryStatus.DELIVERED, updated_at=utc_now())

    @classmethod
    def create(
        cls,
        address: str,
        city: str,
        phone: str,
        postal_code: str | None = None,
        transaction_id: int = 0,
    ) -> "Delivery":
        if not address.strip():
            raise InvalidInputError("Address is required")
        if not city.strip():
            raise InvalidInputError("City is required")
        if not phone.strip():
            raise InvalidInputError("Phone is required")

        return cls(
            id=0,
            transaction_id=transaction_id,
            address=address.strip(),
            city=city.strip(),
            postal_code=(postal_code or "").strip(),
            phone=phone.strip(),
            delivery_fee=cls.fee_for_city(city),
        )

    @classmethod
    def from_persistence(cls, row: Mapping[str, Any]) -> "Delivery":
        return cls(
            id=row["id"],
            transaction_id=row["transaction_id"],
            address=row["address"],
            city=row["city"],
            postal_code=row.get("postal_code") or "",
            phone=row["phone"],
            delivery_fee=to_decimal(row.get("delivery_fee") or 0),
            status=DeliveryStatus(row.get("status") or DeliveryStatus.PENDING.value),
            created_at=row.get("created_at") or utc_now(),
            updated_at=row.get("updated_at") or utc_now(),
        )

    def to_primitive(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "address": self.address,
            "city": self.city,
            "postal_code": self.postal_code,
            "phone": self.phone,
            "full_address": self.full_address(),
            "delivery_fee": self.delivery_fee,
            "status": self.status.value,
            "is_pending": self.is_pending(),
            "is_assigned": self.is_assigned(),
            "is_delivered": self.is_delivered(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
