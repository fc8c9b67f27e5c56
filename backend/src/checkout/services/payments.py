"""
Payment use cases.

- ProcessPaymentUseCase: charge the card for a PENDING transaction
- GetTransactionStatusUseCase: poll the gateway and sync the stored status
- UpdateProductStockUseCase: take stock for a completed transaction
- ApplyProviderResultUseCase: record a result the payment widget got
  directly from the gateway

Provider outcome -> transaction status:

    APPROVED                      -> COMPLETED (stock reduced by one)
    PENDING                       -> PENDING   (provider ids recorded)
    anything else                 -> FAILED

Design Decisions:
- A gateway call that raises leaves the transaction FAILED before the
  error is returned, so no transaction stays PENDING after a crash
- Stock reduction after an approved payment is best effort: the payment
  is already taken, so a stock failure is logged, not returned
- Outcomes reported by the browser are never trusted on their own: the
  gateway is asked for the status, reference and amount it holds
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from checkout.domain.errors import (
    ConflictError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    ProductUnavailableError,
)
from checkout.domain.models import Customer, Product, utc_now
from checkout.domain.money import amounts_match, from_cents
from checkout.domain.ports import (
    CustomerRepository,
    PaymentGateway,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    ProductRepository,
    TransactionRepository,
)
from checkout.domain.result import Result, safe_call
from checkout.domain.transaction import Transaction, TransactionStatus, card_brand_for
from checkout.domain.validation import (
    validate_card_input,
    validate_installments,
    validate_positive_id,
)

logger = logging.getLogger(__name__)


def to_transaction_status(status: PaymentStatus) -> TransactionStatus:
    """Map a gateway payment status to the transaction status it implies."""
    if status is PaymentStatus.APPROVED:
        return TransactionStatus.COMPLETED
    if status is PaymentStatus.PENDING:
        return TransactionStatus.PENDING
    return TransactionStatus.FAILED


def parse_payment_status(value: str) -> PaymentStatus:
    """Unknown status strings are treated as ERROR."""
    try:
        return PaymentStatus(value.strip().upper())
    except ValueError:
        logger.warning(f"Unknown payment status received: {value}")
        return PaymentStatus.ERROR


def apply_payment_outcome(
    transaction: Transaction,
    status: PaymentStatus,
    provider_transaction_id: str,
    reference: str,
) -> Transaction:
    """
    Move a transaction to the status a payment outcome implies.

    Raises:
        InvalidTransitionError: when the transaction is not PENDING
    """
    target = to_transaction_status(status)
    if target is TransactionStatus.COMPLETED:
        return transaction.mark_as_completed(provider_transaction_id, reference)
    if target is TransactionStatus.PENDING:
        return transaction.mark_as_pending(provider_transaction_id or None, reference or None)
    return transaction.mark_as_failed()


async def _load_transaction(
    repository: TransactionRepository,
    transaction_id: int,
) -> Transaction:
    transaction = await repository.find_by_id(transaction_id)
    if transaction is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return transaction


# -- process payment --------------------------------------------------------


@dataclass(frozen=True)
class ProcessPaymentRequest:
    transaction_id: int
    card_number: str
    card_cvc: str
    card_exp_month: str
    card_exp_year: str
    card_holder: str
    installments: int = 1

    def __repr__(self) -> str:
        return (
            f"ProcessPaymentRequest(transaction_id={self.transaction_id}, "
            f"card=****{self.card_number[-4:]}, installments={self.installments})"
        )


@dataclass(frozen=True)
class ProcessPaymentResponse:
    transaction: Transaction
    product: Product
    payment_success: bool
    message: str
    requires_polling: bool = False
    payment_status: PaymentStatus | None = None


def payment_message(result: PaymentResult) -> tuple[bool, str, bool]:
    """
    Summarize a payment result for the customer.

    Returns:
        (payment_success, message, requires_polling)
    """
    if result.is_approved:
        return True, "Payment processed successfully", False

    match result.status:
        case PaymentStatus.PENDING:
            return False, "Payment is being processed. Please check again in a few moments.", True
        case PaymentStatus.DECLINED:
            return False, result.message or "Payment was declined by the bank.", False
        case PaymentStatus.ERROR:
            return False, result.message or "Payment processing failed due to an error.", False
        case PaymentStatus.VOIDED:
            return False, "Payment was cancelled.", False
        case _:
            return False, result.message or "Payment could not be processed.", False


class ProcessPaymentUseCase:
    """
    Charge the card for a PENDING transaction.

    1. Validate card fields and installments
    2. Load the transaction (must be processable, amount consistent)
    3. Load the product (must be available) and the customer
    4. Charge through the gateway
    5. Apply the outcome and reduce stock on approval
    """

    def __init__(
        self,
        payment_gateway: PaymentGateway,
        transaction_repository: TransactionRepository,
        product_repository: ProductRepository,
        customer_repository: CustomerRepository,
        currency: str = "COP",
    ):
        self.gateway = payment_gateway
        self.transactions = transaction_repository
        self.products = product_repository
        self.customers = customer_repository
        self.currency = currency

    async def execute(self, request: ProcessPaymentRequest) -> Result[ProcessPaymentResponse]:
        logger.info(f"Starting payment process: {request!r}")

        for check in (
            validate_positive_id(request.transaction_id, "transaction"),
            validate_card_input(
                request.card_number,
                request.card_cvc,
                request.card_exp_month,
                request.card_exp_year,
                request.card_holder,
            ),
            validate_installments(request.installments),
        ):
            if check.is_failure:
                return Result.failure(check.error)

        return await safe_call(lambda: self._process(request), "Payment processing failed")

    async def _process(self, request: ProcessPaymentRequest) -> ProcessPaymentResponse:
        transaction = await _load_transaction(self.transactions, request.transaction_id)

        if not transaction.can_be_processed():
            raise InvalidTransitionError(
                f"Transaction {transaction.id} cannot be processed. "
                f"Status: {transaction.status.value}"
            )
        if not transaction.is_amount_valid():
            raise InvalidInputError(
                f"Transaction {transaction.id} has invalid amount calculation"
            )

        product = await self._load_available_product(transaction.product_id)
        customer = await self._load_customer(transaction.customer_id)

        card_number = "".join(request.card_number.split())
        card_brand = card_brand_for(card_number)
        transaction = transaction.with_card_details(card_number[-4:], card_brand)

        payment_request = PaymentRequest(
            transaction_id=transaction.id,
            amount=transaction.total_amount,
            currency=self.currency,
            customer_email=customer.email,
            card_number=card_number,
            card_cvc=request.card_cvc,
            card_exp_month=request.card_exp_month,
            card_exp_year=request.card_exp_year,
            card_holder=request.card_holder,
            card_brand=card_brand,
            installments=request.installments or 1,
        )

        try:
            result = await self.gateway.process_payment(payment_request)
        except Exception:
            logger.exception(f"Gateway call failed for transaction {transaction.id}")
            await self._mark_failed(transaction)
            raise

        logger.info(
            f"Payment result for transaction {transaction.id}: status={result.status.value} "
            f"success={result.success} provider_id={result.provider_transaction_id or 'none'}"
        )

        updated = apply_payment_outcome(
            transaction,
            result.status,
            result.provider_transaction_id,
            result.reference,
        )
        saved = await self.transactions.update(updated)

        if result.is_approved:
            product = await self._reduce_stock(product)

        payment_success, message, requires_polling = payment_message(result)
        return ProcessPaymentResponse(
            transaction=saved,
            product=product,
            payment_success=payment_success,
            message=message,
            requires_polling=requires_polling,
            payment_status=result.status,
        )

    async def _load_available_product(self, product_id: int) -> Product:
        product = await self.products.find_by_id(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.is_available():
            raise ProductUnavailableError(f"Product {product.name} is not available")
        return product

    async def _load_customer(self, customer_id: int) -> Customer:
        customer = await self.customers.find_by_id(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return customer

    async def _mark_failed(self, transaction: Transaction) -> None:
        saved = await safe_call(
            lambda: self.transactions.update(transaction.mark_as_failed()),
            "Failed to mark transaction as failed",
        )
        if saved.is_failure:
            logger.error(f"Transaction {transaction.id} could not be marked FAILED: {saved.error}")

    async def _reduce_stock(self, product: Product) -> Product:
        reduced = await safe_call(
            lambda: self.products.update_stock(product.id, product.reduce_stock(1).stock),
            "Failed to update stock",
        )
        if reduced.is_failure:
            logger.error(f"Payment approved but stock update failed for product {product.id}: {reduced.error}")
            return product

        logger.info(f"Stock updated for product {product.name}: {product.stock} -> {reduced.value.stock}")
        return reduced.value


# -- status polling ---------------------------------------------------------


@dataclass(frozen=True)
class ProviderStatusInfo:
    status: PaymentStatus
    success: bool
    message: str
    updated_at: datetime = field(default_factory=utc_now)

    def to_primitive(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "success": self.success,
            "message": self.message,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class TransactionStatusResponse:
    transaction: Transaction
    current_status: TransactionStatus
    provider_status: ProviderStatusInfo | None
    status_changed: bool
    message: str


def status_message(transaction: Transaction, status_changed: bool) -> str:
    match transaction.status:
        case TransactionStatus.COMPLETED:
            if status_changed:
                return "Payment has been completed successfully!"
            return "Payment completed successfully"
        case TransactionStatus.PENDING:
            return "Payment is still being processed. Please check again in a few moments."
        case TransactionStatus.FAILED:
            if status_changed:
                return "Payment has failed. Please try again."
            return "Payment has failed"


class GetTransactionStatusUseCase:
    """
    Report a transaction's status, syncing it with the gateway first.

    When the gateway cannot be queried the stored status is returned
    unchanged.
    """

    def __init__(
        self,
        payment_gateway: PaymentGateway,
        transaction_repository: TransactionRepository,
    ):
        self.gateway = payment_gateway
        self.transactions = transaction_repository

    async def execute(self, transaction_id: int) -> Result[TransactionStatusResponse]:
        validation = validate_positive_id(transaction_id, "transaction")
        if validation.is_failure:
            return Result.failure(validation.error)

        return await safe_call(
            lambda: self._status(transaction_id),
            "Failed to get transaction status",
        )

    async def _status(self, transaction_id: int) -> TransactionStatusResponse:
        transaction = await _load_transaction(self.transactions, transaction_id)

        provider_status = None
        status_changed = False

        if transaction.provider_transaction_id:
            polled = await safe_call(
                lambda: self.gateway.get_payment_status(transaction.provider_transaction_id),
                "Failed to query provider status",
            )
            if polled.is_failure:
                logger.warning(f"Could not query provider status for {transaction_id}: {polled.error}")
            else:
                result = polled.value
                provider_status = ProviderStatusInfo(
                    status=result.status,
                    success=result.success,
                    message=result.message,
                )
                synced = await self._sync(transaction, result)
                status_changed = synced.status is not transaction.status
                transaction = synced

        return TransactionStatusResponse(
            transaction=transaction,
            current_status=transaction.status,
            provider_status=provider_status,
            status_changed=status_changed,
            message=status_message(transaction, status_changed),
        )

    async def _sync(self, transaction: Transaction, result: PaymentResult) -> Transaction:
        """Persist the provider's status when it differs from the stored one."""
        target = to_transaction_status(result.status)
        if target is transaction.status:
            return transaction

        try:
            updated = apply_payment_outcome(
                transaction,
                result.status,
                result.provider_transaction_id or transaction.provider_transaction_id or "",
                result.reference or transaction.provider_reference or "",
            )
        except InvalidTransitionError as e:
            logger.warning(f"Ignoring provider status {result.status.value}: {e}")
            return transaction

        logger.info(
            f"Transaction {transaction.id} status changed "
            f"{transaction.status.value} -> {updated.status.value} (provider: {result.status.value})"
        )

        saved = await safe_call(lambda: self.transactions.update(updated), "Failed to update transaction")
        if saved.is_failure:
            logger.error(f"Failed to persist status for transaction {transaction.id}: {saved.error}")
            return transaction
        return saved.value


# -- stock ------------------------------------------------------------------


class UpdateProductStockUseCase:
    """Reduce the stock of the product bought in a completed transaction."""

    def __init__(
        self,
        product_repository: ProductRepository,
        transaction_repository: TransactionRepository,
    ):
        self.products = product_repository
        self.transactions = transaction_repository

    async def execute(self, transaction_id: int, quantity: int = 1) -> Result[Product]:
        if quantity < 1:
            return Result.failure(InvalidInputError("Quantity must be greater than 0"))

        return await safe_call(
            lambda: self._update(transaction_id, quantity),
            "Failed to update product stock",
        )

    async def _update(self, transaction_id: int, quantity: int) -> Product:
        transaction = await _load_transaction(self.transactions, transaction_id)
        if not transaction.is_completed():
            raise ConflictError(
                f"Cannot update stock: Transaction {transaction_id} is not completed "
                f"(status: {transaction.status.value})"
            )

        product = await self.products.find_by_id(transaction.product_id)
        if product is None:
            raise NotFoundError(f"Product {transaction.product_id} not found")
        if not product.is_active:
            raise ProductUnavailableError(f"Cannot update stock: Product {product.name} is not active")

        reduced = product.reduce_stock(quantity)
        saved = await self.products.update_stock(product.id, reduced.stock)
        logger.info(f"Stock updated for product {product.name}: {product.stock} -> {saved.stock}")
        return saved


# -- provider results from the widget ---------------------------------------


@dataclass(frozen=True)
class ProviderResultInput:
    """Payment outcome reported by the front-end payment widget."""
    provider_transaction_id: str
    provider_status: str
    provider_reference: str
    provider_message: str = ""
    provider_processed_at: datetime | None = None
    amount_in_cents: int | None = None
    currency: str | None = None


@dataclass(frozen=True)
class ApplyProviderResultResponse:
    transaction: Transaction
    payment_status: PaymentStatus
    payment_success: bool
    stock_updated: bool
    message: str


class ApplyProviderResultUseCase:
    """
    Record a payment the widget completed directly with the gateway.

    The widget only says which gateway transaction to look at. Status,
    reference and amount are read back from the gateway, and the
    reference must belong to this transaction before anything changes.

    A replay of an already-applied approval is accepted without asking
    the gateway or touching stock again.
    """

    def __init__(
        self,
        payment_gateway: PaymentGateway,
        transaction_repository: TransactionRepository,
        update_stock: UpdateProductStockUseCase,
        currency: str = "COP",
    ):
        self.gateway = payment_gateway
        self.transactions = transaction_repository
        self.update_stock = update_stock
        self.currency = currency

    async def execute(
        self,
        transaction_id: int,
        provider_result: ProviderResultInput,
    ) -> Result[ApplyProviderResultResponse]:
        validation = validate_positive_id(transaction_id, "transaction")
        if validation.is_failure:
            return Result.failure(validation.error)

        if not provider_result.provider_transaction_id.strip():
            return Result.failure(InvalidInputError("Provider transaction ID is required"))

        return await safe_call(
            lambda: self._apply(transaction_id, provider_result),
            "Failed to update transaction with provider result",
        )

    async def _apply(
        self,
        transaction_id: int,
        provider_result: ProviderResultInput,
    ) -> ApplyProviderResultResponse:
        transaction = await _load_transaction(self.transactions, transaction_id)
        provider_id = provider_result.provider_transaction_id.strip()

        if transaction.is_completed() and transaction.provider_transaction_id == provider_id:
            logger.info(f"Provider result for transaction {transaction_id} already applied")
            return ApplyProviderResultResponse(
                transaction=transaction,
                payment_status=PaymentStatus.APPROVED,
                payment_success=True,
                stock_updated=False,
                message="Payment completed successfully",
            )

        self._check_reported_amount(transaction, provider_result)

        # PaymentProviderError propagates; the transaction stays as it is
        confirmed = await self.gateway.get_payment_status(provider_id)
        self._check_confirmed(transaction, confirmed)

        reported = parse_payment_status(provider_result.provider_status)
        if reported is not confirmed.status:
            logger.warning(
                f"Widget reported {reported.value} for transaction {transaction_id} "
                f"but the gateway says {confirmed.status.value}"
            )

        updated = apply_payment_outcome(
            transaction,
            confirmed.status,
            provider_id,
            confirmed.reference,
        )
        saved = await self.transactions.update(updated)
        logger.info(
            f"Transaction {transaction_id} updated from provider result: "
            f"{transaction.status.value} -> {saved.status.value}"
        )

        stock_updated = False
        if confirmed.is_approved:
            stock = await self.update_stock.execute(transaction_id, 1)
            if stock.is_failure:
                logger.error(f"Failed to update stock for transaction {transaction_id}: {stock.error}")
            stock_updated = stock.is_success

        return ApplyProviderResultResponse(
            transaction=saved,
            payment_status=confirmed.status,
            payment_success=confirmed.is_approved,
            stock_updated=stock_updated,
            message=status_message(saved, saved.status is not transaction.status),
        )

    def _check_reported_amount(self, transaction: Transaction, provider_result: ProviderResultInput) -> None:
        if provider_result.currency and provider_result.currency.upper() != self.currency:
            raise InvalidInputError(
                f"Currency mismatch: expected {self.currency}, got {provider_result.currency}"
            )
        if provider_result.amount_in_cents is not None and not amounts_match(
            from_cents(provider_result.amount_in_cents), transaction.total_amount,
        ):
            raise InvalidInputError(
                f"Amount mismatch for transaction {transaction.id}: "
                f"expected {transaction.total_amount}, got {from_cents(provider_result.amount_in_cents)}"
            )

    def _check_confirmed(self, transaction: Transaction, confirmed: PaymentResult) -> None:
        """The gateway's own record must belong to this transaction."""
        if transaction.provider_reference:
            reference_ok = confirmed.reference == transaction.provider_reference
        else:
            reference_ok = confirmed.reference.startswith(f"TXN-{transaction.id}-")
        if not reference_ok:
            raise InvalidInputError(
                f"Provider reference {confirmed.reference or 'none'} does not belong to "
                f"transaction {transaction.id}"
            )

        if confirmed.currency and confirmed.currency.upper() != self.currency:
            raise InvalidInputError(
                f"Currency mismatch: expected {self.currency}, got {confirmed.currency}"
            )
        if confirmed.amount is None or not amounts_match(confirmed.amount, transaction.total_amount):
            raise InvalidInputError(
                f"Amount mismatch for transaction {transaction.id}: "
                f"expected {transaction.total_amount}, got {confirmed.amount}"
            )
