"""
Payment gateway HTTP client.

Wraps the card-payment gateway API (Wompi-style):

    GET  /merchants/{public_key}   merchant info + acceptance tokens
    POST /tokens/cards             card tokenization
    POST /transactions             submit a payment
    GET  /transactions/{id}        poll a payment

Handles:
- Acceptance token retrieval (required before any payment)
- Card tokenization with sanitized card fields
- Integrity signature generation (SHA-256)
- Payment submission, turning structured gateway errors into a
  synthetic ERROR transaction instead of raising

Card numbers, CVCs and secrets are never logged in full.
"""

import json
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from checkout.config import PaymentProviderConfig
from checkout.domain.errors import PaymentProviderError
from checkout.domain.hashing import compute_integrity_signature
from checkout.domain.money import to_cents

logger = logging.getLogger(__name__)


def _mask(value: str | None, keep: int = 16) -> str:
    """Show only a prefix of a token or signature."""
    if not value:
        return "NOT_PROVIDED"
    return f"{value[:keep]}..."


def _response_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON, falling back to text."""
    try:
        return response.json()
    except ValueError:
        return response.text


def _json_body(response: httpx.Response, failure_message: str) -> Any:
    """Decode a successful response, which the gateway always sends as JSON."""
    try:
        return response.json()
    except ValueError as e:
        logger.error(
            f"{failure_message}: status={response.status_code} "
            f"body is not JSON: {response.text[:500]}"
        )
        raise PaymentProviderError(
            f"{failure_message}: response is not valid JSON",
            status_code=response.status_code,
            response_body=response.text,
        ) from e


@dataclass(frozen=True)
class CardData:
    """Raw card fields as typed by the customer."""
    number: str
    cvc: str
    exp_month: str
    exp_year: str
    card_holder: str

    def sanitized(self) -> "CardData":
        """Strip whitespace from the number and zero-pad the month."""
        return CardData(
            number="".join(self.number.split()),
            cvc=self.cvc.strip(),
            exp_month=self.exp_month.strip().zfill(2),
            exp_year=self.exp_year.strip(),
            card_holder=self.card_holder.strip(),
        )

    @property
    def last_four(self) -> str:
        return "".join(self.number.split())[-4:]

    def to_payload(self) -> dict[str, str]:
        return {
            "number": self.number,
            "cvc": self.cvc,
            "exp_month": self.exp_month,
            "exp_year": self.exp_year,
            "card_holder": self.card_holder,
        }

    def __repr__(self) -> str:
        return (
            f"CardData(number=****-****-****-{self.last_four}, cvc=***, "
            f"exp_month={self.exp_month!r}, exp_year={self.exp_year!r}, "
            f"card_holder={self.card_holder!r})"
        )


@dataclass(frozen=True)
class MerchantInfo:
    """Merchant metadata with the presigned acceptance tokens."""
    merchant_id: int | None
    name: str
    email: str
    acceptance_token: str
    acceptance_permalink: str
    personal_data_token: str
    personal_data_permalink: str

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "MerchantInfo":
        data = payload.get("data") or {}
        acceptance = data.get("presigned_acceptance") or {}
        personal = data.get("presigned_personal_data_auth") or {}
        return cls(
            merchant_id=data.get("id"),
            name=data.get("name", ""),
            email=data.get("email", ""),
            acceptance_token=acceptance.get("acceptance_token", ""),
            acceptance_permalink=acceptance.get("permalink", ""),
            personal_data_token=personal.get("acceptance_token", ""),
            personal_data_permalink=personal.get("permalink", ""),
        )


@dataclass(frozen=True)
class ProviderPaymentRequest:
    """Body of POST /transactions."""
    amount_in_cents: int
    currency: str
    customer_email: str
    reference: str
    acceptance_token: str
    signature: str
    token: str | None = None
    installments: int = 1
    accept_personal_auth: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "amount_in_cents": self.amount_in_cents,
            "currency": self.currency,
            "customer_email": self.customer_email,
            "reference": self.reference,
            "acceptance_token": self.acceptance_token,
            "signature": self.signature,
            "payment_method": {
                "type": "CARD",
                "installments": self.installments,
                "token": self.token,
            },
        }
        if self.accept_personal_auth:
            payload["accept_personal_auth"] = self.accept_personal_auth
        return payload

    def safe_summary(self) -> dict[str, Any]:
        """Loggable view of the request."""
        return {
            "amount_in_cents": self.amount_in_cents,
            "currency": self.currency,
            "reference": self.reference,
            "acceptance_token": _mask(self.acceptance_token, 20),
            "signature": _mask(self.signature),
            "token": "***TOKEN***" if self.token else "NOT_PROVIDED",
            "installments": self.installments,
        }


@dataclass(frozen=True)
class ProviderTransaction:
    """A transaction as the gateway reports it."""
    id: str
    status: str  # APPROVED, DECLINED, VOIDED, ERROR, PENDING, ...
    reference: str
    amount_in_cents: int
    currency: str
    payment_method_type: str = "CARD"
    status_message: str | None = None
    created_at: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "ProviderTransaction":
        data = payload.get("data") or {}
        return cls(
            id=str(data.get("id") or ""),
            status=data.get("status", "ERROR"),
            reference=data.get("reference", ""),
            amount_in_cents=data.get("amount_in_cents", 0),
            currency=data.get("currency", ""),
            payment_method_type=data.get("payment_method_type", "CARD"),
            status_message=data.get("status_message"),
            created_at=data.get("created_at"),
        )


class PaymentProviderClient:
    """
    Async client for the payment gateway.

    Configuration is passed explicitly; nothing is read from the
    environment here, so tests can build a client around an
    httpx.MockTransport.

    Example:
        client = PaymentProviderClient(PaymentProviderConfig.from_settings(settings))

        result = await client.process_payment_with_new_card(
            amount_in_cents=455000000,
            currency="COP",
            customer_email="juan@example.com",
            reference=client.generate_reference(42),
            card=CardData("4242 4242 4242 4242", "123", "8", "28", "Juan Perez"),
        )
    """

    # Sandbox cards with a fixed outcome
    TEST_CARDS = {
        "visa_approved": "4242424242424242",
        "visa_declined": "4000000000000002",
        "mastercard_approved": "5555555555554444",
        "mastercard_declined": "2223003122003222",
    }

    def __init__(
        self,
        config: PaymentProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Gateway URL, keys and timeout
            transport: Override the HTTP transport (for testing)
        """
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        missing = config.missing_keys
        if missing:
            logger.warning(f"Payment provider credentials missing: {', '.join(missing)}")
        logger.info(f"Payment provider client configured for {config.base_url}")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.config.private_key}",
                },
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _public_auth(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.public_key}"}

    def _private_auth(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.private_key}"}

    async def _send(
        self,
        method: str,
        path: str,
        failure_message: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        Raises:
            PaymentProviderError: with the HTTP status and body when the
                gateway answers with an error, or without them when the
                request never got a response
        """
        try:
            response = await self._get_client().request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = _response_body(e.response)
            logger.error(
                f"{failure_message}: status={e.response.status_code} "
                f"url={e.request.url} body={json.dumps(body, default=str)[:500]}"
            )
            raise PaymentProviderError(
                f"{failure_message}: {e}",
                status_code=e.response.status_code,
                response_body=body,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"{failure_message}: {e!r}")
            raise PaymentProviderError(f"{failure_message}: {e}") from e

        return _json_body(response, failure_message)

    # -- merchant / acceptance ----------------------------------------------

    async def get_acceptance_token(self) -> MerchantInfo:
        """
        Fetch the merchant's presigned acceptance tokens.

        Must be called before submitting any transaction: the gateway
        rejects payments that do not carry an acceptance token.
        """
        logger.info("Requesting acceptance token from merchant info")
        payload = await self._send(
            "GET",
            f"/merchants/{self.config.public_key}",
            "Acceptance token retrieval failed",
            headers=self._public_auth(),
        )
        info = MerchantInfo.from_api(payload)
        logger.info(
            f"Acceptance token obtained: {_mask(info.acceptance_token, 20)} "
            f"(terms: {info.acceptance_permalink})"
        )
        return info

    async def get_acceptance_token_simple(self) -> dict[str, Any]:
        """Fetch merchant info and return the raw payload."""
        return await self._send(
            "GET",
            f"/merchants/{self.config.public_key}",
            "Acceptance token retrieval failed",
            headers=self._public_auth(),
        )

    # -- tokenization -------------------------------------------------------

    async def create_card_token(self, card: CardData) -> str:
        """
        Tokenize a card.

        Returns:
            The opaque token id used in place of the card number
        """
        clean = card.sanitized()
        logger.info(f"Creating card token for {clean!r}")

        payload = await self._send(
            "POST",
            "/tokens/cards",
            "Token creation failed",
            json=clean.to_payload(),
            headers=self._public_auth(),
        )
        token_id = (payload.get("data") or {}).get("id")
        if not token_id:
            raise PaymentProviderError(
                "Token creation failed: response did not include a token id",
                response_body=payload,
            )

        logger.info(f"Card token created: {_mask(token_id, 12)} (status={payload.get('status')})")
        return token_id

    # -- signing ------------------------------------------------------------

    def generate_integrity_signature(
        self,
        reference: str,
        amount_in_cents: int,
        currency: str,
    ) -> str:
        """Sign reference + amount + currency with the integrity key."""
        try:
            signature = compute_integrity_signature(
                reference, amount_in_cents, currency, self.config.integrity_key,
            )
        except ValueError as e:
            raise PaymentProviderError(f"Signature generation failed: {e}") from e

        logger.debug(f"Integrity signature generated for {reference}: {_mask(signature)}")
        return signature

    # -- payments -----------------------------------------------------------

    async def process_payment(self, request: ProviderPaymentRequest) -> ProviderTransaction:
        """
        Submit a payment.

        A structured error answer from the gateway is returned as a
        synthetic ERROR transaction so the caller can record a failed
        payment. A transport failure (no answer at all) raises.

        Raises:
            PaymentProviderError: when acceptance_token or signature is
                missing, or when the gateway could not be reached
        """
        if not request.acceptance_token:
            raise PaymentProviderError(
                "acceptance_token is required. Call get_acceptance_token() first."
            )
        if not request.signature:
            raise PaymentProviderError(
                "signature is required. Generate integrity signature first."
            )

        logger.info(f"Submitting payment: {request.safe_summary()}")

        try:
            response = await self._get_client().post(
                "/transactions",
                json=request.to_payload(),
                headers=self._private_auth(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = _response_body(e.response)
            logger.error(
                f"Gateway rejected payment {request.reference}: "
                f"status={e.response.status_code} body={json.dumps(body, default=str)[:500]}"
            )
            if not body:
                raise PaymentProviderError(
                    f"Payment provider error: {e}",
                    status_code=e.response.status_code,
                ) from e
            return self._error_transaction(request, body)
        except httpx.RequestError as e:
            logger.error(f"Payment provider unreachable: {e!r}")
            raise PaymentProviderError(f"Payment provider error: {e}") from e

        transaction = ProviderTransaction.from_api(_json_body(response, "Payment provider error"))
        logger.info(
            f"Payment response: id={transaction.id} status={transaction.status} "
            f"reference={transaction.reference}"
        )
        return transaction

    @staticmethod
    def _error_transaction(request: ProviderPaymentRequest, body: Any) -> ProviderTransaction:
        reason = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            reason = body["error"].get("reason")
        if not reason:
            reason = body if isinstance(body, str) else json.dumps(body, default=str)

        return ProviderTransaction(
            id="",
            status="ERROR",
            reference=request.reference,
            amount_in_cents=request.amount_in_cents,
            currency=request.currency,
            payment_method_type="CARD",
            status_message=reason,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    async def process_payment_with_new_card(
        self,
        amount_in_cents: int,
        currency: str,
        customer_email: str,
        reference: str,
        card: CardData,
        installments: int = 1,
    ) -> ProviderTransaction:
        """
        Full payment sequence for a card that is not tokenized yet.

        1. Fetch merchant acceptance tokens
        2. Tokenize the card
        3. Sign the payment
        4. Submit it

        Any step's failure propagates unchanged.
        """
        logger.info(f"Starting card payment {reference}")

        merchant = await self.get_acceptance_token()
        card_token = await self.create_card_token(card)
        signature = self.generate_integrity_signature(reference, amount_in_cents, currency)

        return await self.process_payment(ProviderPaymentRequest(
            amount_in_cents=amount_in_cents,
            currency=currency,
            customer_email=customer_email,
            reference=reference,
            acceptance_token=merchant.acceptance_token,
            accept_personal_auth=merchant.personal_data_token or None,
            signature=signature,
            token=card_token,
            installments=installments,
        ))

    async def get_transaction_status(self, provider_transaction_id: str) -> ProviderTransaction:
        payload = await self._send(
            "GET",
            f"/transactions/{provider_transaction_id}",
            "Failed to get transaction status",
            headers=self._private_auth(),
        )
        return ProviderTransaction.from_api(payload)

    # -- helpers ------------------------------------------------------------

    def generate_reference(self, transaction_id: int) -> str:
        """
        Build the merchant reference sent to the gateway.

        Millisecond timestamps alone can collide on fast retries, so a
        random suffix is appended.
        """
        timestamp = int(time.time() * 1000)
        return f"TXN-{transaction_id}-{timestamp}-{secrets.token_hex(4)}"

    @staticmethod
    def convert_to_cents(amount_in_pesos: Decimal | int | float) -> int:
        return to_cents(amount_in_pesos)

    def is_valid_test_card(self, card_number: str) -> bool:
        return "".join(card_number.split()) in self.TEST_CARDS.values()

    def get_test_cards(self) -> dict[str, str]:
        return dict(self.TEST_CARDS)
