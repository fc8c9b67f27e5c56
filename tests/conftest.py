"""
Shared fixtures: in-memory repositories, a scripted payment gateway and
an app wired to both.
"""

import itertools
from dataclasses import replace
from decimal import Decimal

import pytest

from checkout.domain.errors import NotFoundError
from checkout.domain.models import Customer, Delivery, DeliveryStatus, Product
from checkout.domain.ports import (
    CustomerRepository,
    DeliveryRepository,
    PaymentGateway,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    ProductRepository,
    TransactionRepository,
)
from checkout.domain.transaction import Transaction, TransactionStatus


class InMemoryProductRepository(ProductRepository):

    def __init__(self, products: list[Product] | None = None):
        self.items: dict[int, Product] = {}
        self._ids = itertools.count(1)
        for product in products or []:
            self._insert(product)

    def _insert(self, product: Product) -> Product:
        stored = replace(product, id=next(self._ids))
        self.items[stored.id] = stored
        return stored

    async def find_all(self) -> list[Product]:
        return list(self.items.values())

    async def find_available(self) -> list[Product]:
        return [p for p in self.items.values() if p.is_available()]

    async def find_by_id(self, product_id: int) -> Product | None:
        return self.items.get(product_id)

    async def save(self, product: Product) -> Product:
        if product.id == 0:
            return self._insert(product)
        self.items[product.id] = product
        return product

    async def update_stock(self, product_id: int, new_stock: int) -> Product:
        if product_id not in self.items:
            raise NotFoundError(f"Product {product_id} not found")
        self.items[product_id] = replace(self.items[product_id], stock=new_stock)
        return self.items[product_id]


class InMemoryCustomerRepository(CustomerRepository):

    def __init__(self):
        self.items: dict[int, Customer] = {}
        self._ids = itertools.count(1)

    async def find_by_id(self, customer_id: int) -> Customer | None:
        return self.items.get(customer_id)

    async def find_by_email(self, email: str) -> Customer | None:
        return next((c for c in self.items.values() if c.email == email.lower()), None)

    async def save(self, customer: Customer) -> Customer:
        if customer.id == 0:
            customer = replace(customer, id=next(self._ids))
        self.items[customer.id] = customer
        return customer


class InMemoryTransactionRepository(TransactionRepository):

    def __init__(self):
        self.items: dict[int, Transaction] = {}
        self._ids = itertools.count(1)

    async def find_all(self) -> list[Transaction]:
        return sorted(self.items.values(), key=lambda t: t.id, reverse=True)

    async def find_by_id(self, transaction_id: int) -> Transaction | None:
        return self.items.get(transaction_id)

    async def find_by_status(self, status: TransactionStatus) -> list[Transaction]:
        return [t for t in await self.find_all() if t.status is status]

    async def find_by_provider_reference(self, reference: str) -> Transaction | None:
        return next((t for t in self.items.values() if t.provider_reference == reference), None)

    async def save(self, transaction: Transaction) -> Transaction:
        if transaction.id == 0:
            transaction = replace(transaction, id=next(self._ids))
        self.items[transaction.id] = transaction
        return transaction

    async def update(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self.items:
            raise NotFoundError(f"Transaction {transaction.id} not found")
        self.items[transaction.id] = transaction
        return transaction


class InMemoryDeliveryRepository(DeliveryRepository):

    def __init__(self):
        self.items: dict[int, Delivery] = {}
        self._ids = itertools.count(1)

    async def find_by_transaction_id(self, transaction_id: int) -> Delivery | None:
        return next((d for d in self.items.values() if d.transaction_id == transaction_id), None)

    async def find_by_status(self, status: DeliveryStatus) -> list[Delivery]:
        return [d for d in self.items.values() if d.status is status]

    async def save(self, delivery: Delivery) -> Delivery:
        if delivery.id == 0:
            delivery = replace(delivery, id=next(self._ids))
        self.items[delivery.id] = delivery
        return delivery


class FakePaymentGateway(PaymentGateway):
    """Returns a scripted status, or raises a scripted error."""

    def __init__(self, status: PaymentStatus = PaymentStatus.APPROVED, message: str = ""):
        self.status = status
        self.message = message
        self.error: Exception | None = None
        self.poll_status: PaymentStatus | None = None
        self.poll_reference = self.generate_reference(1)
        self.poll_amount: Decimal | None = Decimal("4555000")
        self.requests: list[PaymentRequest] = []
        self.polled: list[str] = []

    def _result(self, status: PaymentStatus, reference: str, amount: Decimal | None = None) -> PaymentResult:
        return PaymentResult(
            success=status is PaymentStatus.APPROVED,
            provider_transaction_id="prov-123",
            reference=reference,
            status=status,
            message=self.message or status.value.lower(),
            amount=amount,
            currency="COP",
        )

    async def process_payment(self, request: PaymentRequest) -> PaymentResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self._result(self.status, self.generate_reference(request.transaction_id), request.amount)

    async def get_payment_status(self, provider_transaction_id: str) -> PaymentResult:
        self.polled.append(provider_transaction_id)
        if self.error is not None:
            raise self.error
        return self._result(self.poll_status or self.status, self.poll_reference, self.poll_amount)

    def generate_reference(self, transaction_id: int) -> str:
        return f"TXN-{transaction_id}-1700000000000-abcd1234"

    async def get_acceptance_token_info(self) -> dict[str, str]:
        return {
            "acceptance_token": "acc-token",
            "personal_data_token": "pd-token",
            "terms_and_conditions_url": "https://example.com/terms.pdf",
            "privacy_policy_url": "https://example.com/privacy.pdf",
        }

    async def aclose(self) -> None:
        pass


def make_product(**overrides) -> Product:
    fields = {
        "id": 0,
        "name": "iPhone 14 Pro",
        "description": "Smartphone",
        "price": Decimal("4500000"),
        "stock": 10,
        "image_url": "https://example.com/iphone.png",
        "base_fee": Decimal("50000"),
    }
    fields.update(overrides)
    return Product(**fields)


def make_transaction(**overrides) -> Transaction:
    fields = {
        "id": 1,
        "customer_id": 1,
        "product_id": 1,
        "product_amount": Decimal("4500000"),
        "base_fee": Decimal("50000"),
        "delivery_fee": Decimal("5000"),
        "total_amount": Decimal("4555000"),
    }
    fields.update(overrides)
    return Transaction(**fields)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def products() -> InMemoryProductRepository:
    return InMemoryProductRepository([
        make_product(),
        make_product(name="PlayStation 5", price=Decimal("2500000"), base_fee=Decimal("35000"), stock=8),
        make_product(name="Discontinued", stock=0),
    ])


@pytest.fixture
def customers() -> InMemoryCustomerRepository:
    return InMemoryCustomerRepository()


@pytest.fixture
def transactions() -> InMemoryTransactionRepository:
    return InMemoryTransactionRepository()


@pytest.fixture
def deliveries() -> InMemoryDeliveryRepository:
    return InMemoryDeliveryRepository()


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def app(products, customers, transactions, deliveries, gateway):
    from checkout.api import dependencies
    from checkout.main import create_app

    application = create_app()
    application.dependency_overrides.update({
        dependencies.get_product_repository: lambda: products,
        dependencies.get_customer_repository: lambda: customers,
        dependencies.get_transaction_repository: lambda: transactions,
        dependencies.get_delivery_repository: lambda: deliveries,
        dependencies.get_payment_gateway: lambda: gateway,
    })
    return application
