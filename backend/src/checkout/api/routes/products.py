"""
Product catalog endpoints.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from checkout.api.dependencies import get_product_use_case, get_products_use_case
from checkout.api.responses import success
from checkout.api.schemas import ApiResponse
from checkout.services.products import GetProductsUseCase, GetProductUseCase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ApiResponse)
async def list_products(
    use_case: Annotated[GetProductsUseCase, Depends(get_products_use_case)],
    available_only: bool = False,
    limit: Annotated[int | None, Query(description="Page size, 1-100")] = None,
    offset: Annotated[int | None, Query(description="Items to skip")] = None,
) -> ApiResponse:
    """List products, optionally only those in stock."""
    response = (await use_case.execute(available_only, limit, offset)).unwrap()
    logger.info(f"Listed {len(response.products)} of {response.total} products")

    return success(
        {
            "products": [p.to_primitive() for p in response.products],
            "total": response.total,
            "has_more": response.has_more,
        },
        next_step="DISPLAY_PRODUCTS",
        recommendation="Products ready for display",
    )


@router.get("/{product_id}", response_model=ApiResponse)
async def get_product(
    product_id: int,
    use_case: Annotated[GetProductUseCase, Depends(get_product_use_case)],
) -> ApiResponse:
    product = (await use_case.execute(product_id)).unwrap()
    return success(
        product.to_primitive(),
        next_step="DISPLAY_PRODUCT",
        recommendation="Product ready for display or purchase",
    )
