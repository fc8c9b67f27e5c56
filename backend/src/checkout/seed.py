"""
Seed the database with reference products and customers.

Usage:
    python -m checkout.seed            # create tables, seed if empty
    python -m checkout.seed --reset    # drop everything and reseed
"""

import argparse
import asyncio
import logging
from decimal import Decimal

from checkout.domain.models import Customer, Product
from checkout.infrastructure.database import close_db, drop_db, get_session, init_db
from checkout.infrastructure.repositories import SqlCustomerRepository, SqlProductRepository

logger = logging.getLogger(__name__)


# (name, description, price, base_fee, stock, image_url)
SEED_PRODUCTS = [
    (
        "iPhone 14 Pro",
        "Smartphone Apple iPhone 14 Pro 256GB - Color Space Black",
        Decimal("4500000"), Decimal("50000"), 10,
        "https://store.storeimages.cdn-apple.com/4668/as-images.apple.com/is/iphone-14-pro-finish-select-202209-6-1inch-spaceblack",
    ),
    (
        "Samsung Galaxy S23",
        "Smartphone Samsung Galaxy S23 128GB - Color Phantom Black",
        Decimal("3200000"), Decimal("45000"), 15,
        "https://images.samsung.com/is/image/samsung/p6pim/co/2302/gallery/co-galaxy-s23-s911-sm-s911bzklltc-534851688",
    ),
    (
        "MacBook Air M2",
        "Laptop Apple MacBook Air M2 256GB - Color Midnight",
        Decimal("8900000"), Decimal("80000"), 5,
        "https://store.storeimages.cdn-apple.com/4668/as-images.apple.com/is/macbook-air-midnight-select-20220606",
    ),
    (
        "AirPods Pro 2",
        "Auriculares Apple AirPods Pro 2da Generación con MagSafe",
        Decimal("850000"), Decimal("15000"), 25,
        "https://store.storeimages.cdn-apple.com/4668/as-images.apple.com/is/MME73",
    ),
    (
        "PlayStation 5",
        "Consola Sony PlayStation 5 - Edición estándar",
        Decimal("2500000"), Decimal("35000"), 8,
        "https://gmedia.playstation.com/is/image/SIEPDC/ps5-product-thumbnail-01-en-14sep21",
    ),
]

# (name, email, phone)
SEED_CUSTOMERS = [
    ("Juan Pérez", "juan.perez@test.com", "+57 300 123 4567"),
    ("María García", "maria.garcia@test.com", "+57 301 987 6543"),
]


async def seed(reset: bool = False) -> tuple[int, int]:
    """
    Populate products and customers.

    Returns:
        (products created, customers created)
    """
    if reset:
        await drop_db()
    await init_db()

    created_products = 0
    created_customers = 0

    async with get_session() as session:
        products = SqlProductRepository(session)
        customers = SqlCustomerRepository(session)

        if await products.find_all():
            logger.info("Products already present, skipping product seed")
        else:
            for name, description, price, base_fee, stock, image_url in SEED_PRODUCTS:
                product = Product.create(name, description, price, stock, image_url, base_fee)
                saved = await products.save(product)
                logger.info(f"Created product {saved.id}: {saved.name}")
                created_products += 1

        for name, email, phone in SEED_CUSTOMERS:
            if await customers.find_by_email(email) is not None:
                continue
            saved = await customers.save(Customer.create(name, email, phone))
            logger.info(f"Created customer {saved.id}: {saved.masked_email()}")
            created_customers += 1

    return created_products, created_customers


async def _run(reset: bool) -> None:
    try:
        created_products, created_customers = await seed(reset=reset)
        logger.info(
            f"Seeding completed: {created_products} products, {created_customers} customers"
        )
    finally:
        await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the checkout database with reference data")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before seeding")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    asyncio.run(_run(args.reset))


if __name__ == "__main__":
    main()
