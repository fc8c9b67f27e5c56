from dataclasses import replace
from decimal import Decimal

import pytest

from checkout.domain.errors import (
    ConflictError,
    DuplicateError,
    InsufficientStockError,
    InternalError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PaymentProviderError,
    ProductUnavailableError,
)
from checkout.domain.models import Customer
from checkout.domain.ports import PaymentStatus
from checkout.domain.transaction import CardBrand, TransactionStatus
from checkout.services import (
    ApplyProviderResultUseCase,
    CreateTransactionUseCase,
    GetProductsUseCase,
    GetProductUseCase,
    GetTransactionStatusUseCase,
    GetTransactionUseCase,
    ListTransactionsUseCase,
    ProcessPaymentUseCase,
    UpdateProductStockUseCase,
)
from checkout.services.payments import ProcessPaymentRequest, ProviderResultInput
from checkout.services.transactions import CreateTransactionRequest, CustomerInput, DeliveryInput

from conftest import InMemoryCustomerRepository, InMemoryProductRepository, make_product


class RacingCustomerRepository(InMemoryCustomerRepository):
    """Another checkout inserts the same e-mail between lookup and save."""

    def __init__(self):
        super().__init__()
        self.lookups = 0

    async def find_by_email(self, email: str) -> Customer | None:
        self.lookups += 1
        if self.lookups == 1:
            return None
        return await super().find_by_email(email)

    async def save(self, customer: Customer) -> Customer:
        if customer.id == 0:
            await super().save(Customer.create("Ana", customer.email, customer.phone))
            raise DuplicateError(f"Customer with email {customer.email} already exists")
        return await super().save(customer)


def checkout_request(product_id: int = 1, quantity: int = 1, **customer) -> CreateTransactionRequest:
    fields = {"name": "Juan Perez", "email": "juan@example.com", "phone": "+57 300 123 4567"}
    fields.update(customer)
    return CreateTransactionRequest(
        customer=CustomerInput(**fields),
        product_id=product_id,
        quantity=quantity,
        delivery=DeliveryInput(address="Calle 123 # 45-67", city="Bogota", phone="+57 300 123 4567"),
    )


def card_request(transaction_id: int = 1, **overrides) -> ProcessPaymentRequest:
    fields = {
        "transaction_id": transaction_id,
        "card_number": "4242 4242 4242 4242",
        "card_cvc": "123",
        "card_exp_month": "08",
        "card_exp_year": "28",
        "card_holder": "Juan Perez",
    }
    fields.update(overrides)
    return ProcessPaymentRequest(**fields)


@pytest.fixture
def create_use_case(transactions, customers, products, deliveries):
    return CreateTransactionUseCase(transactions, customers, products, deliveries)


@pytest.fixture
def pay_use_case(gateway, transactions, products, customers):
    return ProcessPaymentUseCase(gateway, transactions, products, customers)


@pytest.fixture
def apply_use_case(gateway, transactions, products):
    return ApplyProviderResultUseCase(gateway, transactions, UpdateProductStockUseCase(products, transactions))


@pytest.fixture
async def pending(create_use_case):
    """A PENDING transaction for one iPhone shipped to Bogota."""
    return (await create_use_case.execute(checkout_request())).unwrap().transaction


class TestProductListing:
    @pytest.fixture
    def catalog(self):
        return InMemoryProductRepository([make_product(name=f"Product {i}") for i in range(10)])

    @pytest.mark.anyio
    async def test_page_in_the_middle(self, catalog):
        result = await GetProductsUseCase(catalog).execute(limit=3, offset=2)

        page = result.unwrap()
        assert [p.name for p in page.products] == ["Product 2", "Product 3", "Product 4"]
        assert page.total == 10
        assert page.has_more

    @pytest.mark.anyio
    async def test_no_limit_returns_rest(self, catalog):
        page = (await GetProductsUseCase(catalog).execute(offset=7)).unwrap()

        assert len(page.products) == 3
        assert not page.has_more

    @pytest.mark.anyio
    async def test_last_full_page_has_no_more(self, catalog):
        page = (await GetProductsUseCase(catalog).execute(limit=5, offset=5)).unwrap()
        assert not page.has_more

    @pytest.mark.anyio
    async def test_available_only_skips_out_of_stock(self, products):
        page = (await GetProductsUseCase(products).execute(available_only=True)).unwrap()

        assert [p.name for p in page.products] == ["iPhone 14 Pro", "PlayStation 5"]
        assert page.total == 2

    @pytest.mark.anyio
    async def test_limit_over_maximum_is_rejected(self, products):
        result = await GetProductsUseCase(products).execute(limit=101)

        assert isinstance(result.error, InvalidInputError)

    @pytest.mark.anyio
    async def test_get_missing_product(self, products):
        result = await GetProductUseCase(products).execute(99)

        assert isinstance(result.error, NotFoundError)
        assert result.error.message == "Product 99 not found"


class TestCreateTransaction:
    @pytest.mark.anyio
    async def test_creates_pending_transaction_with_fees(self, create_use_case, deliveries):
        response = (await create_use_case.execute(checkout_request())).unwrap()

        transaction = response.transaction
        assert transaction.id == 1
        assert transaction.status is TransactionStatus.PENDING
        assert transaction.delivery_fee == Decimal("5000")
        assert transaction.total_amount == Decimal("4555000")
        assert response.delivery.transaction_id == transaction.id
        assert await deliveries.find_by_transaction_id(transaction.id) is not None

    @pytest.mark.anyio
    async def test_quantity_multiplies_product_amount(self, create_use_case):
        response = (await create_use_case.execute(checkout_request(product_id=2, quantity=2))).unwrap()

        assert response.transaction.product_amount == Decimal("5000000")
        assert response.transaction.total_amount == Decimal("5040000")

    @pytest.mark.anyio
    async def test_reuses_customer_by_email(self, create_use_case, customers):
        await create_use_case.execute(checkout_request())
        second = await create_use_case.execute(checkout_request(email="JUAN@example.com", name="Other"))

        assert second.unwrap().customer.name == "Juan Perez"
        assert len(customers.items) == 1

    @pytest.mark.anyio
    async def test_missing_customer_field(self, create_use_case, transactions):
        result = await create_use_case.execute(checkout_request(phone=" "))

        assert result.error.message == "Customer phone is required"
        assert transactions.items == {}

    @pytest.mark.anyio
    async def test_invalid_phone_format(self, create_use_case):
        result = await create_use_case.execute(checkout_request(phone="3001234567"))
        assert isinstance(result.error, InvalidInputError)

    @pytest.mark.anyio
    async def test_unknown_product(self, create_use_case, customers):
        result = await create_use_case.execute(checkout_request(product_id=42))

        assert isinstance(result.error, NotFoundError)
        assert result.error.message == "Product with ID 42 not found"
        assert customers.items == {}

    @pytest.mark.anyio
    async def test_unavailable_product(self, create_use_case, customers):
        result = await create_use_case.execute(checkout_request(product_id=3))

        assert isinstance(result.error, ProductUnavailableError)
        assert customers.items == {}

    @pytest.mark.anyio
    async def test_insufficient_stock(self, create_use_case, transactions, customers):
        result = await create_use_case.execute(checkout_request(quantity=11))

        assert isinstance(result.error, InsufficientStockError)
        assert result.error.message == "Insufficient stock. Available: 10, Requested: 11"
        assert transactions.items == {}
        assert customers.items == {}

    @pytest.mark.anyio
    async def test_customer_created_concurrently_is_reused(self, transactions, products, deliveries):
        customers = RacingCustomerRepository()
        use_case = CreateTransactionUseCase(transactions, customers, products, deliveries)

        response = (await use_case.execute(checkout_request())).unwrap()

        assert response.customer.id == 1
        assert response.customer.name == "Ana"
        assert response.transaction.customer_id == 1

    @pytest.mark.anyio
    async def test_get_and_list(self, create_use_case, transactions):
        await create_use_case.execute(checkout_request())
        await create_use_case.execute(checkout_request(product_id=2))

        assert (await GetTransactionUseCase(transactions).execute(2)).unwrap().product_id == 2
        listed = (await ListTransactionsUseCase(transactions).execute()).unwrap()
        assert [t.id for t in listed] == [2, 1]

        missing = await GetTransactionUseCase(transactions).execute(9)
        assert missing.error.message == "Transaction 9 not found"


class TestProcessPayment:
    @pytest.mark.anyio
    async def test_approved_completes_and_reduces_stock(self, pending, pay_use_case, products, gateway):
        response = (await pay_use_case.execute(card_request(pending.id))).unwrap()

        assert response.payment_success
        assert response.message == "Payment processed successfully"
        assert response.transaction.status is TransactionStatus.COMPLETED
        assert response.transaction.provider_transaction_id == "prov-123"
        assert response.transaction.card_last_four == "4242"
        assert response.transaction.card_brand is CardBrand.VISA
        assert response.product.stock == 9
        assert products.items[1].stock == 9
        assert gateway.requests[0].card_number == "4242424242424242"
        assert gateway.requests[0].amount == Decimal("4555000")

    @pytest.mark.anyio
    async def test_declined_fails_without_touching_stock(self, pending, pay_use_case, products, gateway):
        gateway.status = PaymentStatus.DECLINED
        gateway.message = "Insufficient funds"

        response = (await pay_use_case.execute(card_request(pending.id))).unwrap()

        assert not response.payment_success
        assert response.message == "Insufficient funds"
        assert response.transaction.status is TransactionStatus.FAILED
        assert products.items[1].stock == 10

    @pytest.mark.anyio
    async def test_pending_requires_polling(self, pending, pay_use_case, transactions, gateway):
        gateway.status = PaymentStatus.PENDING

        response = (await pay_use_case.execute(card_request(pending.id))).unwrap()

        assert response.requires_polling
        stored = transactions.items[pending.id]
        assert stored.status is TransactionStatus.PENDING
        assert stored.provider_transaction_id == "prov-123"

    @pytest.mark.anyio
    async def test_gateway_error_leaves_transaction_failed(self, pending, pay_use_case, transactions, gateway):
        gateway.error = PaymentProviderError("Payment provider error: connection refused")

        result = await pay_use_case.execute(card_request(pending.id))

        assert isinstance(result.error, PaymentProviderError)
        assert transactions.items[pending.id].status is TransactionStatus.FAILED

    @pytest.mark.anyio
    async def test_unexpected_gateway_crash_is_wrapped(self, pending, pay_use_case, transactions, gateway):
        gateway.error = RuntimeError("boom")

        result = await pay_use_case.execute(card_request(pending.id))

        assert isinstance(result.error, InternalError)
        assert result.error.message == "Payment processing failed: boom"
        assert transactions.items[pending.id].is_failed()

    @pytest.mark.anyio
    async def test_completed_transaction_cannot_be_paid_again(self, pending, pay_use_case, gateway):
        await pay_use_case.execute(card_request(pending.id))

        result = await pay_use_case.execute(card_request(pending.id))

        assert isinstance(result.error, InvalidTransitionError)
        assert "Status: COMPLETED" in result.error.message
        assert len(gateway.requests) == 1

    @pytest.mark.anyio
    async def test_tampered_amount_is_rejected(self, pending, pay_use_case, transactions, gateway):
        transactions.items[pending.id] = replace(pending, total_amount=Decimal("1"))

        result = await pay_use_case.execute(card_request(pending.id))

        assert result.error.message == f"Transaction {pending.id} has invalid amount calculation"
        assert gateway.requests == []

    @pytest.mark.anyio
    async def test_card_fields_and_installments_are_checked_first(self, pay_use_case, gateway):
        missing_holder = await pay_use_case.execute(card_request(card_holder=""))
        bad_installments = await pay_use_case.execute(card_request(installments=5))

        assert missing_holder.error.message == "Card holder name is required"
        assert bad_installments.error.message.startswith("Invalid installments")
        assert gateway.requests == []

    @pytest.mark.anyio
    async def test_unknown_transaction(self, pay_use_case):
        result = await pay_use_case.execute(card_request(77))
        assert isinstance(result.error, NotFoundError)


class TestStatusPolling:
    @pytest.mark.anyio
    async def test_without_provider_id_returns_stored_status(self, pending, gateway, transactions):
        response = (await GetTransactionStatusUseCase(gateway, transactions).execute(pending.id)).unwrap()

        assert response.current_status is TransactionStatus.PENDING
        assert response.provider_status is None
        assert not response.status_changed

    @pytest.mark.anyio
    async def test_pending_becomes_completed(self, pending, pay_use_case, gateway, transactions):
        gateway.status = PaymentStatus.PENDING
        await pay_use_case.execute(card_request(pending.id))
        gateway.poll_status = PaymentStatus.APPROVED

        response = (await GetTransactionStatusUseCase(gateway, transactions).execute(pending.id)).unwrap()

        assert response.status_changed
        assert response.current_status is TransactionStatus.COMPLETED
        assert response.message == "Payment has been completed successfully!"
        assert transactions.items[pending.id].is_completed()

    @pytest.mark.anyio
    async def test_provider_outage_keeps_stored_status(self, pending, pay_use_case, gateway, transactions):
        gateway.status = PaymentStatus.PENDING
        await pay_use_case.execute(card_request(pending.id))
        gateway.error = PaymentProviderError("Failed to get transaction status")

        response = (await GetTransactionStatusUseCase(gateway, transactions).execute(pending.id)).unwrap()

        assert response.current_status is TransactionStatus.PENDING
        assert response.provider_status is None

    @pytest.mark.anyio
    async def test_terminal_status_is_not_overwritten(self, pending, pay_use_case, gateway, transactions):
        await pay_use_case.execute(card_request(pending.id))
        gateway.poll_status = PaymentStatus.DECLINED

        response = (await GetTransactionStatusUseCase(gateway, transactions).execute(pending.id)).unwrap()

        assert response.current_status is TransactionStatus.COMPLETED
        assert response.provider_status.status is PaymentStatus.DECLINED
        assert not response.status_changed


class TestUpdateStock:
    @pytest.mark.anyio
    async def test_requires_completed_transaction(self, pending, products, transactions):
        result = await UpdateProductStockUseCase(products, transactions).execute(pending.id)

        assert isinstance(result.error, ConflictError)
        assert "is not completed (status: PENDING)" in result.error.message

    @pytest.mark.anyio
    async def test_reduces_stock_for_completed(self, pending, products, transactions):
        transactions.items[pending.id] = pending.mark_as_completed("prov-1", "ref")

        saved = (await UpdateProductStockUseCase(products, transactions).execute(pending.id, 2)).unwrap()

        assert saved.stock == 8


class TestApplyProviderResult:
    @staticmethod
    def approved(**overrides) -> ProviderResultInput:
        fields = {
            "provider_transaction_id": "widget-1",
            "provider_status": "APPROVED",
            "provider_reference": "TXN-1-1700000000000-abcd1234",
        }
        fields.update(overrides)
        return ProviderResultInput(**fields)

    @pytest.mark.anyio
    async def test_approval_confirmed_by_gateway(self, pending, apply_use_case, products, gateway):
        response = (await apply_use_case.execute(pending.id, self.approved(amount_in_cents=455500000))).unwrap()

        assert gateway.polled == ["widget-1"]
        assert response.payment_success
        assert response.stock_updated
        assert response.transaction.provider_transaction_id == "widget-1"
        assert response.transaction.provider_reference == "TXN-1-1700000000000-abcd1234"
        assert products.items[1].stock == 9

    @pytest.mark.anyio
    async def test_forged_approval_follows_gateway_status(self, pending, apply_use_case, products, gateway):
        gateway.poll_status = PaymentStatus.DECLINED

        response = (await apply_use_case.execute(pending.id, self.approved())).unwrap()

        assert not response.payment_success
        assert response.payment_status is PaymentStatus.DECLINED
        assert response.transaction.is_failed()
        assert not response.stock_updated
        assert products.items[1].stock == 10

    @pytest.mark.anyio
    async def test_gateway_outage_changes_nothing(self, pending, apply_use_case, transactions, products, gateway):
        gateway.error = PaymentProviderError("Failed to get transaction status", status_code=404)

        result = await apply_use_case.execute(pending.id, self.approved())

        assert isinstance(result.error, PaymentProviderError)
        assert transactions.items[pending.id].is_pending()
        assert products.items[1].stock == 10

    @pytest.mark.anyio
    async def test_gateway_reference_of_other_transaction_is_rejected(self, pending, apply_use_case, transactions, gateway):
        gateway.poll_reference = "TXN-2-1700000000000-abcd1234"

        result = await apply_use_case.execute(pending.id, self.approved())

        assert isinstance(result.error, InvalidInputError)
        assert "does not belong to transaction 1" in result.error.message
        assert transactions.items[pending.id].is_pending()

    @pytest.mark.anyio
    async def test_recorded_reference_must_match_exactly(self, pending, apply_use_case, transactions, gateway):
        transactions.items[pending.id] = pending.mark_as_pending("prov-123", "TXN-1-1700000000000-ffff0000")

        result = await apply_use_case.execute(pending.id, self.approved())

        assert isinstance(result.error, InvalidInputError)

    @pytest.mark.anyio
    async def test_gateway_amount_must_match(self, pending, apply_use_case, transactions, gateway):
        gateway.poll_amount = Decimal("1000")

        result = await apply_use_case.execute(pending.id, self.approved())

        assert result.error.message.startswith("Amount mismatch for transaction 1")
        assert transactions.items[pending.id].is_pending()

    @pytest.mark.anyio
    async def test_gateway_without_amount_is_rejected(self, pending, apply_use_case, transactions, gateway):
        gateway.poll_amount = None

        result = await apply_use_case.execute(pending.id, self.approved())

        assert isinstance(result.error, InvalidInputError)
        assert transactions.items[pending.id].is_pending()

    @pytest.mark.anyio
    async def test_replay_is_idempotent(self, pending, apply_use_case, products, gateway):
        await apply_use_case.execute(pending.id, self.approved())

        replay = (await apply_use_case.execute(pending.id, self.approved())).unwrap()

        assert replay.payment_success
        assert not replay.stock_updated
        assert products.items[1].stock == 9
        assert gateway.polled == ["widget-1"]

    @pytest.mark.anyio
    async def test_gateway_pending_keeps_transaction_pending(self, pending, apply_use_case, gateway):
        gateway.poll_status = PaymentStatus.PENDING

        response = (await apply_use_case.execute(pending.id, self.approved())).unwrap()

        assert response.transaction.is_pending()
        assert response.transaction.provider_transaction_id == "widget-1"

    @pytest.mark.anyio
    async def test_reported_amount_mismatch_is_rejected_before_polling(self, pending, apply_use_case, transactions, gateway):
        result = await apply_use_case.execute(pending.id, self.approved(amount_in_cents=100))

        assert isinstance(result.error, InvalidInputError)
        assert transactions.items[pending.id].is_pending()
        assert gateway.polled == []

    @pytest.mark.anyio
    async def test_currency_mismatch_is_rejected(self, pending, apply_use_case):
        result = await apply_use_case.execute(pending.id, self.approved(currency="USD"))
        assert result.error.message == "Currency mismatch: expected COP, got USD"

    @pytest.mark.anyio
    async def test_failed_transaction_rejects_approval(self, pending, apply_use_case, transactions):
        transactions.items[pending.id] = pending.mark_as_failed()

        result = await apply_use_case.execute(pending.id, self.approved())

        assert isinstance(result.error, InvalidTransitionError)

    @pytest.mark.anyio
    async def test_requires_provider_id(self, pending, apply_use_case):
        result = await apply_use_case.execute(pending.id, self.approved(provider_transaction_id=" "))
        assert result.error.message == "Provider transaction ID is required"
