"""
Payment gateway adapter.

Implements the domain PaymentGateway port on top of the HTTP client,
translating provider transactions into PaymentResult values.

Design Decisions:
- Provider status strings map through a table; unknown statuses become
  ERROR so an unexpected answer never completes a transaction
- Transport failures (PaymentProviderError) propagate: the use case
  decides to fail the transaction and report a 500
- Structured gateway rejections already arrive as ERROR transactions
  from the client and are mapped like any other status
"""

import logging
from datetime import datetime

from checkout.domain.models import utc_now
from checkout.domain.money import from_cents
from checkout.domain.ports import PaymentGateway, PaymentRequest, PaymentResult, PaymentStatus

from .payment_provider import CardData, PaymentProviderClient, ProviderTransaction

logger = logging.getLogger(__name__)


# Fallback messages when the gateway sends none
DEFAULT_STATUS_MESSAGES: dict[PaymentStatus, str] = {
    PaymentStatus.APPROVED: "Payment approved successfully",
    PaymentStatus.PENDING: "Payment is being processed",
    PaymentStatus.DECLINED: "Payment was declined",
    PaymentStatus.ERROR: "Payment processing error",
    PaymentStatus.VOIDED: "Payment was cancelled",
    PaymentStatus.FAILED: "Payment failed",
    PaymentStatus.CANCELLED: "Payment was cancelled",
}


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return utc_now()
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return utc_now()


def map_provider_transaction(transaction: ProviderTransaction, reference: str = "") -> PaymentResult:
    """Convert a gateway transaction into the domain PaymentResult."""
    try:
        status = PaymentStatus(transaction.status)
        message = transaction.status_message or DEFAULT_STATUS_MESSAGES[status]
    except ValueError:
        logger.warning(f"Unknown payment status received: {transaction.status}")
        status = PaymentStatus.ERROR
        message = f"Unknown payment status: {transaction.status}"

    return PaymentResult(
        success=status is PaymentStatus.APPROVED,
        provider_transaction_id=transaction.id,
        reference=transaction.reference or reference,
        status=status,
        message=message,
        processed_at=_parse_timestamp(transaction.created_at),
        amount=from_cents(transaction.amount_in_cents) if transaction.amount_in_cents else None,
        currency=transaction.currency or None,
        metadata={"payment_method_type": transaction.payment_method_type},
    )


class PaymentServiceAdapter(PaymentGateway):
    """PaymentGateway backed by PaymentProviderClient."""

    def __init__(self, client: PaymentProviderClient):
        self.client = client

    async def process_payment(self, request: PaymentRequest) -> PaymentResult:
        """
        Charge a card for a transaction.

        Raises:
            PaymentProviderError: when the gateway could not be reached
        """
        reference = self.generate_reference(request.transaction_id)
        amount_in_cents = self.client.convert_to_cents(request.amount)

        logger.info(
            f"Processing payment for transaction {request.transaction_id}: "
            f"{amount_in_cents} cents {request.currency} "
            f"(test card: {self.client.is_valid_test_card(request.card_number)})"
        )

        transaction = await self.client.process_payment_with_new_card(
            amount_in_cents=amount_in_cents,
            currency=request.currency,
            customer_email=request.customer_email,
            reference=reference,
            card=CardData(
                number=request.card_number,
                cvc=request.card_cvc,
                exp_month=request.card_exp_month,
                exp_year=request.card_exp_year,
                card_holder=request.card_holder,
            ),
            installments=request.installments,
        )

        result = map_provider_transaction(transaction, reference)
        logger.info(
            f"Payment for transaction {request.transaction_id} mapped to "
            f"{result.status.value} (provider id: {result.provider_transaction_id or 'none'})"
        )
        return result

    async def get_payment_status(self, provider_transaction_id: str) -> PaymentResult:
        logger.info(f"Checking payment status for {provider_transaction_id}")
        transaction = await self.client.get_transaction_status(provider_transaction_id)
        return map_provider_transaction(transaction)

    def generate_reference(self, transaction_id: int) -> str:
        return self.client.generate_reference(transaction_id)

    async def get_acceptance_token_info(self) -> dict[str, str]:
        merchant = await self.client.get_acceptance_token()
        return {
            "acceptance_token": merchant.acceptance_token,
            "personal_data_token": merchant.personal_data_token,
            "terms_and_conditions_url": merchant.acceptance_permalink,
            "privacy_policy_url": merchant.personal_data_permalink,
        }

    async def aclose(self) -> None:
        await self.client.aclose()
