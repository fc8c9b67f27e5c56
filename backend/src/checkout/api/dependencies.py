"""
FastAPI dependencies: session-per-request repositories and use cases.

Tests replace get_payment_gateway and the repository providers through
app.dependency_overrides.
"""

from functools import lru_cache
from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from checkout.config import PaymentProviderConfig, Settings, get_settings
from checkout.domain.ports import (
    CustomerRepository,
    DeliveryRepository,
    PaymentGateway,
    ProductRepository,
    TransactionRepository,
)
from checkout.infrastructure.database import get_session
from checkout.infrastructure.repositories import (
    SqlCustomerRepository,
    SqlDeliveryRepository,
    SqlProductRepository,
    SqlTransactionRepository,
)
from checkout.services.payment_adapter import PaymentServiceAdapter
from checkout.services.payment_provider import PaymentProviderClient
from checkout.services.payments import (
    ApplyProviderResultUseCase,
    GetTransactionStatusUseCase,
    ProcessPaymentUseCase,
    UpdateProductStockUseCase,
)
from checkout.services.products import GetProductsUseCase, GetProductUseCase
from checkout.services.transactions import (
    CreateTransactionUseCase,
    GetTransactionUseCase,
    ListTransactionsUseCase,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with get_session() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_product_repository(session: SessionDep) -> ProductRepository:
    return SqlProductRepository(session)


def get_customer_repository(session: SessionDep) -> CustomerRepository:
    return SqlCustomerRepository(session)


def get_transaction_repository(session: SessionDep) -> TransactionRepository:
    return SqlTransactionRepository(session)


def get_delivery_repository(session: SessionDep) -> DeliveryRepository:
    return SqlDeliveryRepository(session)


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """Gateway adapter shared by all requests (one HTTP connection pool)."""
    config = PaymentProviderConfig.from_settings(get_settings())
    return PaymentServiceAdapter(PaymentProviderClient(config))


Products = Annotated[ProductRepository, Depends(get_product_repository)]
Customers = Annotated[CustomerRepository, Depends(get_customer_repository)]
Transactions = Annotated[TransactionRepository, Depends(get_transaction_repository)]
Deliveries = Annotated[DeliveryRepository, Depends(get_delivery_repository)]
Gateway = Annotated[PaymentGateway, Depends(get_payment_gateway)]


def get_products_use_case(products: Products) -> GetProductsUseCase:
    return GetProductsUseCase(products)


def get_product_use_case(products: Products) -> GetProductUseCase:
    return GetProductUseCase(products)


def create_transaction_use_case(
    transactions: Transactions,
    customers: Customers,
    products: Products,
    deliveries: Deliveries,
) -> CreateTransactionUseCase:
    return CreateTransactionUseCase(transactions, customers, products, deliveries)


def get_transaction_use_case(transactions: Transactions) -> GetTransactionUseCase:
    return GetTransactionUseCase(transactions)


def list_transactions_use_case(transactions: Transactions) -> ListTransactionsUseCase:
    return ListTransactionsUseCase(transactions)


def process_payment_use_case(
    gateway: Gateway,
    transactions: Transactions,
    products: Products,
    customers: Customers,
    settings: SettingsDep,
) -> ProcessPaymentUseCase:
    return ProcessPaymentUseCase(gateway, transactions, products, customers, settings.currency)


def transaction_status_use_case(
    gateway: Gateway,
    transactions: Transactions,
) -> GetTransactionStatusUseCase:
    return GetTransactionStatusUseCase(gateway, transactions)


def apply_provider_result_use_case(
    gateway: Gateway,
    transactions: Transactions,
    products: Products,
    settings: SettingsDep,
) -> ApplyProviderResultUseCase:
    return ApplyProviderResultUseCase(
        gateway,
        transactions,
        UpdateProductStockUseCase(products, transactions),
        settings.currency,
    )
