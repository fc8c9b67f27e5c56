"""
Application services: the gateway client and adapter, and the use cases
that orchestrate the domain over the repository ports.
"""

from .payment_adapter import PaymentServiceAdapter
from .payment_provider import PaymentProviderClient
from .payments import (
    ApplyProviderResultUseCase,
    GetTransactionStatusUseCase,
    ProcessPaymentUseCase,
    UpdateProductStockUseCase,
)
from .products import GetProductsUseCase, GetProductUseCase
from .transactions import CreateTransactionUseCase, GetTransactionUseCase, ListTransactionsUseCase

__all__ = [
    "ApplyProviderResultUseCase",
    "CreateTransactionUseCase",
    "GetProductUseCase",
    "GetProductsUseCase",
    "GetTransactionStatusUseCase",
    "GetTransactionUseCase",
    "ListTransactionsUseCase",
    "PaymentProviderClient",
    "PaymentServiceAdapter",
    "ProcessPaymentUseCase",
    "UpdateProductStockUseCase",
]
