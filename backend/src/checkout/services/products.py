"""
Catalog use cases: list products and fetch one product.
"""

import logging
from dataclasses import dataclass

from checkout.domain.errors import NotFoundError
from checkout.domain.models import Product
from checkout.domain.ports import ProductRepository
from checkout.domain.result import Result, safe_call
from checkout.domain.validation import validate_pagination, validate_positive_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GetProductsResponse:
    products: list[Product]
    total: int
    has_more: bool


def paginate(
    products: list[Product],
    limit: int | None,
    offset: int | None,
) -> tuple[list[Product], bool]:
    """
    Slice a product list.

    Without a limit everything from offset onwards is returned and
    has_more is False.
    """
    start = offset or 0
    if limit is None:
        return products[start:], False
    return products[start:start + limit], len(products) > start + limit


class GetProductsUseCase:
    """List the catalog, optionally only products that can be bought."""

    def __init__(self, product_repository: ProductRepository):
        self.products = product_repository

    async def execute(
        self,
        available_only: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Result[GetProductsResponse]:
        validation = validate_pagination(limit, offset)
        if validation.is_failure:
            return Result.failure(validation.error)

        finder = self.products.find_available if available_only else self.products.find_all
        found = await safe_call(finder, "Failed to get products")
        if found.is_failure:
            logger.error(f"Product listing failed: {found.error}")
            return Result.failure(found.error)

        products = found.value
        page, has_more = paginate(products, limit, offset)
        return Result.success(GetProductsResponse(
            products=page,
            total=len(products),
            has_more=has_more,
        ))


class GetProductUseCase:

    def __init__(self, product_repository: ProductRepository):
        self.products = product_repository

    async def execute(self, product_id: int) -> Result[Product]:
        validation = validate_positive_id(product_id, "product")
        if validation.is_failure:
            return Result.failure(validation.error)

        found = await safe_call(lambda: self.products.find_by_id(product_id), "Failed to get product")
        if found.is_failure:
            return Result.failure(found.error)

        if found.value is None:
            return Result.failure(NotFoundError(f"Product {product_id} not found"))

        return Result.success(found.value)
