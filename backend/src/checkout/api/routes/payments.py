"""
Payment endpoints.

Charges cards for PENDING transactions, polls the gateway for their
status and records results the payment widget obtained on its own.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from checkout.api.dependencies import (
    Gateway,
    apply_provider_result_use_case,
    process_payment_use_case,
    transaction_status_use_case,
)
from checkout.api.responses import success
from checkout.api.schemas import ApiResponse, ProcessPaymentRequest, ProviderResultRequest
from checkout.domain.transaction import TransactionStatus
from checkout.services.payments import (
    ApplyProviderResultUseCase,
    GetTransactionStatusUseCase,
    ProcessPaymentRequest as ChargeRequest,
    ProcessPaymentUseCase,
    ProviderResultInput,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payment"])


# Client hints per resulting transaction status
STATUS_HINTS: dict[TransactionStatus, tuple[str, str]] = {
    TransactionStatus.COMPLETED: ("SHOW_SUCCESS", "Transaction completed successfully"),
    TransactionStatus.PENDING: ("KEEP_CHECKING", "Check again in 10-30 seconds"),
    TransactionStatus.FAILED: ("SHOW_ERROR", "Transaction failed - contact support if needed"),
}


@router.get("/acceptance-token", response_model=ApiResponse)
async def get_acceptance_token(gateway: Gateway) -> ApiResponse:
    """Acceptance tokens and terms links the customer must accept before paying."""
    info = await gateway.get_acceptance_token_info()
    return success(
        info,
        next_step="ACCEPT_TERMS",
        recommendation="Show the terms and conditions before collecting card data",
    )


@router.post("/{transaction_id}/process-payment", response_model=ApiResponse)
async def process_payment(
    transaction_id: int,
    body: ProcessPaymentRequest,
    use_case: Annotated[ProcessPaymentUseCase, Depends(process_payment_use_case)],
) -> ApiResponse:
    """
    Charge the card for a PENDING transaction.

    A declined card is not an HTTP error: the response is successful with
    payment_success false and the transaction FAILED.
    """
    request = ChargeRequest(transaction_id=transaction_id, **body.model_dump())
    response = (await use_case.execute(request)).unwrap()

    if response.payment_success:
        next_step, recommendation = "SHOW_SUCCESS", "Payment completed successfully"
    elif response.requires_polling:
        next_step, recommendation = "KEEP_CHECKING", "Check payment status in 10-30 seconds"
    else:
        next_step, recommendation = "SHOW_ERROR", "Payment failed - please try again"

    return success(
        {
            "transaction": response.transaction.to_primitive(),
            "product": response.product.to_primitive(),
            "payment_success": response.payment_success,
            "payment_status": response.payment_status.value if response.payment_status else None,
            "message": response.message,
            "requires_polling": response.requires_polling,
        },
        next_step=next_step,
        recommendation=recommendation,
    )


@router.get("/{transaction_id}/status", response_model=ApiResponse)
async def get_transaction_status(
    transaction_id: int,
    use_case: Annotated[GetTransactionStatusUseCase, Depends(transaction_status_use_case)],
) -> ApiResponse:
    response = (await use_case.execute(transaction_id)).unwrap()
    next_step, recommendation = STATUS_HINTS[response.current_status]

    return success(
        {
            "transaction": response.transaction.to_primitive(),
            "payment_status": {
                "current_status": response.current_status.value,
                "provider_status": (
                    response.provider_status.to_primitive() if response.provider_status else None
                ),
                "status_changed": response.status_changed,
                "message": response.message,
            },
        },
        next_step=next_step,
        recommendation=recommendation,
    )


@router.post("/{transaction_id}/update-with-provider-result", response_model=ApiResponse)
async def update_with_provider_result(
    transaction_id: int,
    body: ProviderResultRequest,
    use_case: Annotated[ApplyProviderResultUseCase, Depends(apply_provider_result_use_case)],
) -> ApiResponse:
    logger.info(
        f"Applying provider result for transaction {transaction_id}: "
        f"{body.provider_status} ({body.provider_transaction_id})"
    )
    response = (await use_case.execute(transaction_id, ProviderResultInput(**body.model_dump()))).unwrap()

    return success(
        {
            "transaction": response.transaction.to_primitive(),
            "payment_success": response.payment_success,
            "payment_status": response.payment_status.value,
            "message": response.message,
            "stock_updated": response.stock_updated,
        },
        next_step="SHOW_SUCCESS" if response.payment_success else "SHOW_ERROR",
        recommendation=(
            "Payment completed successfully"
            if response.payment_success
            else "Payment was not successful"
        ),
        externally_processed=True,
        stock_updated=response.stock_updated,
    )
