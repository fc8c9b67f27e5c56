"""
Transaction use cases: checkout (create), fetch and list.

CreateTransactionUseCase flow:
1. Validate the request shape
2. Check the product exists, is available and has enough stock
3. Build the delivery (fee derived from the city)
4. Get the customer by e-mail, or create it
5. Create the PENDING transaction and save it with its delivery

Every check runs before the first write; the customer, transaction and
delivery are then saved in that order.
"""

import logging
from dataclasses import asdict, dataclass

from checkout.domain.errors import (
    DuplicateError,
    InsufficientStockError,
    NotFoundError,
    ProductUnavailableError,
)
from checkout.domain.models import Customer, Delivery, Product
from checkout.domain.ports import (
    CustomerRepository,
    DeliveryRepository,
    ProductRepository,
    TransactionRepository,
)
from checkout.domain.result import Result, safe_call
from checkout.domain.transaction import CardBrand, PaymentMethod, Transaction, TransactionStatus
from checkout.domain.validation import validate_checkout_request, validate_positive_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerInput:
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class DeliveryInput:
    address: str
    city: str
    phone: str
    postal_code: str | None = None


@dataclass(frozen=True)
class CreateTransactionRequest:
    """Checkout request as received from the web layer."""
    customer: CustomerInput
    product_id: int
    delivery: DeliveryInput
    quantity: int = 1
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    card_last_four: str | None = None
    card_brand: CardBrand | None = None


@dataclass(frozen=True)
class CreateTransactionResponse:
    transaction: Transaction
    customer: Customer
    product: Product
    delivery: Delivery


class CreateTransactionUseCase:
    """Open a PENDING transaction for one product purchase."""

    def __init__(
        self,
        transaction_repository: TransactionRepository,
        customer_repository: CustomerRepository,
        product_repository: ProductRepository,
        delivery_repository: DeliveryRepository,
    ):
        self.transactions = transaction_repository
        self.customers = customer_repository
        self.products = product_repository
        self.deliveries = delivery_repository

    async def execute(self, request: CreateTransactionRequest) -> Result[CreateTransactionResponse]:
        validation = validate_checkout_request(
            asdict(request.customer),
            request.product_id,
            request.quantity,
            asdict(request.delivery),
        )
        if validation.is_failure:
            return Result.failure(validation.error)

        return await safe_call(lambda: self._create(request), "Failed to create transaction")

    async def _create(self, request: CreateTransactionRequest) -> CreateTransactionResponse:
        quantity = request.quantity or 1

        product = await self._check_product(request.product_id, quantity)

        delivery = Delivery.create(
            address=request.delivery.address,
            city=request.delivery.city,
            phone=request.delivery.phone,
            postal_code=request.delivery.postal_code,
        )
        customer = await self._get_or_create_customer(request.customer)

        transaction = Transaction.create(
            customer_id=customer.id,
            product_id=product.id,
            product_amount=product.price * quantity,
            base_fee=product.base_fee,
            delivery_fee=delivery.delivery_fee,
            payment_method=request.payment_method,
            card_last_four=request.card_last_four,
            card_brand=request.card_brand,
        )

        saved = await self.transactions.save(transaction)
        saved_delivery = await self.deliveries.save(delivery.with_transaction(saved.id))

        logger.info(
            f"Transaction {saved.id} created for customer {customer.id}: "
            f"{quantity} x product {product.id}, total {saved.formatted_amount()}"
        )
        return CreateTransactionResponse(
            transaction=saved,
            customer=customer,
            product=product,
            delivery=saved_delivery,
        )

    async def _get_or_create_customer(self, data: CustomerInput) -> Customer:
        existing = await self.customers.find_by_email(data.email.strip().lower())
        if existing is not None:
            return existing

        try:
            customer = await self.customers.save(Customer.create(data.name, data.email, data.phone))
        except DuplicateError:
            # Another checkout created it first
            existing = await self.customers.find_by_email(data.email.strip().lower())
            if existing is None:
                raise
            return existing
        logger.info(f"Created customer {customer.id} ({customer.masked_email()})")
        return customer

    async def _check_product(self, product_id: int, quantity: int) -> Product:
        product = await self.products.find_by_id(product_id)
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")

        if not product.is_available():
            raise ProductUnavailableError(f"Product {product.name} is not available")

        if not product.can_fulfill_quantity(quantity):
            raise InsufficientStockError(
                f"Insufficient stock. Available: {product.stock}, Requested: {quantity}"
            )

        return product


class GetTransactionUseCase:

    def __init__(self, transaction_repository: TransactionRepository):
        self.transactions = transaction_repository

    async def execute(self, transaction_id: int) -> Result[Transaction]:
        validation = validate_positive_id(transaction_id, "transaction")
        if validation.is_failure:
            return Result.failure(validation.error)

        found = await safe_call(
            lambda: self.transactions.find_by_id(transaction_id),
            "Failed to get transaction",
        )
        if found.is_failure:
            return Result.failure(found.error)

        if found.value is None:
            return Result.failure(NotFoundError(f"Transaction {transaction_id} not found"))

        return Result.success(found.value)


class ListTransactionsUseCase:
    """All transactions, newest first, optionally filtered by status."""

    def __init__(self, transaction_repository: TransactionRepository):
        self.transactions = transaction_repository

    async def execute(self, status: TransactionStatus | None = None) -> Result[list[Transaction]]:
        if status is None:
            return await safe_call(self.transactions.find_all, "Failed to list transactions")
        return await safe_call(
            lambda: self.transactions.find_by_status(status),
            "Failed to list transactions",
        )
