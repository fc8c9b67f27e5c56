"""
Pydantic schemas for API request/response validation.

These schemas define the contract between frontend and backend.
Monetary values are serialized as strings to avoid floating point issues.
Business rules (e-mail format, phone format, stock) are enforced by the
domain, so request schemas only check shape and types.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PaymentMethodEnum(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"


class CardBrandEnum(str, Enum):
    VISA = "VISA"
    MASTERCARD = "MASTERCARD"


class TransactionStatusEnum(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# =============================================================================
# Request Schemas
# =============================================================================

class CustomerData(BaseModel):
    name: str = Field(..., description="Full name, at least 2 characters")
    email: str = Field(..., description="Contact e-mail; customers are matched by it")
    phone: str = Field(..., description="Mobile number as +57 XXX XXX XXXX", examples=["+57 300 123 4567"])


class DeliveryData(BaseModel):
    address: str
    city: str = Field(..., description="Destination city; determines the delivery fee")
    phone: str
    postal_code: str | None = None


class PaymentData(BaseModel):
    method: PaymentMethodEnum = PaymentMethodEnum.CREDIT_CARD
    card_last_four: str | None = Field(default=None, pattern=r"^[0-9]{4}$")
    card_brand: CardBrandEnum | None = None


class CreateTransactionRequest(BaseModel):
    """Request to open a checkout transaction."""
    customer: CustomerData
    product_id: int
    quantity: int = 1
    payment: PaymentData = Field(default_factory=PaymentData)
    delivery: DeliveryData


class ProcessPaymentRequest(BaseModel):
    """Card details for charging a PENDING transaction."""
    card_number: str = Field(..., examples=["4242 4242 4242 4242"])
    card_cvc: str
    card_exp_month: str = Field(..., examples=["08"])
    card_exp_year: str = Field(..., examples=["28"])
    card_holder: str
    installments: int = Field(default=1, description="One of 1, 3, 6, 9, 12, 18, 24, 36")

    def __repr__(self) -> str:
        return f"ProcessPaymentRequest(card=****{self.card_number[-4:]}, installments={self.installments})"


class ProviderResultRequest(BaseModel):
    """Payment outcome the front-end widget received from the gateway."""
    provider_transaction_id: str
    provider_status: str = Field(..., examples=["APPROVED", "DECLINED", "ERROR"])
    provider_message: str = ""
    provider_reference: str
    provider_processed_at: datetime | None = None
    amount_in_cents: int | None = None
    currency: str | None = None


# =============================================================================
# Response Schemas
# =============================================================================

class ErrorBody(BaseModel):
    message: str
    code: str
    details: dict[str, Any] | None = None


class ResponseMetadata(BaseModel):
    """Hints for the client; endpoints may add extra keys."""
    model_config = ConfigDict(extra="allow")

    timestamp: datetime
    next_step: str | None = None
    recommendation: str | None = None


class ApiResponse(BaseModel):
    """Envelope returned by every endpoint."""
    success: bool
    data: Any = None
    error: ErrorBody | None = None
    metadata: ResponseMetadata


class HealthData(BaseModel):
    status: str = "healthy"
    version: str
