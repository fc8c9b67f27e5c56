"""
Checkout transaction endpoints.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from checkout.api.dependencies import (
    create_transaction_use_case,
    get_transaction_use_case,
    list_transactions_use_case,
)
from checkout.api.responses import success
from checkout.api.schemas import ApiResponse, CreateTransactionRequest, TransactionStatusEnum
from checkout.domain.transaction import CardBrand, PaymentMethod, TransactionStatus
from checkout.services.transactions import (
    CreateTransactionRequest as CheckoutRequest,
    CreateTransactionUseCase,
    CustomerInput,
    DeliveryInput,
    GetTransactionUseCase,
    ListTransactionsUseCase,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    body: CreateTransactionRequest,
    use_case: Annotated[CreateTransactionUseCase, Depends(create_transaction_use_case)],
) -> ApiResponse:
    """
    Open a PENDING transaction.

    The customer is matched by e-mail (created on first purchase) and the
    delivery fee is derived from the destination city.
    """
    request = CheckoutRequest(
        customer=CustomerInput(**body.customer.model_dump()),
        product_id=body.product_id,
        quantity=body.quantity,
        delivery=DeliveryInput(**body.delivery.model_dump()),
        payment_method=PaymentMethod(body.payment.method.value),
        card_last_four=body.payment.card_last_four,
        card_brand=CardBrand(body.payment.card_brand.value) if body.payment.card_brand else None,
    )
    created = (await use_case.execute(request)).unwrap()

    return success(
        {
            "transaction": created.transaction.to_primitive(),
            "customer": created.customer.to_primitive(),
            "product": created.product.to_primitive(),
            "delivery": created.delivery.to_primitive(),
        },
        next_step="PROCEED_TO_PAYMENT",
        recommendation="You can now proceed to pay for this transaction",
    )


@router.get("", response_model=ApiResponse)
async def list_transactions(
    use_case: Annotated[ListTransactionsUseCase, Depends(list_transactions_use_case)],
    status_filter: Annotated[
        TransactionStatusEnum | None,
        Query(alias="status", description="Only transactions in this status"),
    ] = None,
) -> ApiResponse:
    wanted = TransactionStatus(status_filter.value) if status_filter else None
    transactions = (await use_case.execute(wanted)).unwrap()
    return success(
        {
            "transactions": [t.to_primitive() for t in transactions],
            "total": len(transactions),
        },
    )


@router.get("/{transaction_id}", response_model=ApiResponse)
async def get_transaction(
    transaction_id: int,
    use_case: Annotated[GetTransactionUseCase, Depends(get_transaction_use_case)],
) -> ApiResponse:
    transaction = (await use_case.execute(transaction_id)).unwrap()
    next_step = "PAYMENT_PROCESSING" if transaction.is_pending() else "SHOW_RESULT"
    return success(transaction.to_primitive(), next_step=next_step)
