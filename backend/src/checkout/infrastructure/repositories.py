"""
SQLAlchemy implementations of the repository ports.

Each repository works on the AsyncSession it is given and commits its own
writes. Records never leave this module: rows are turned back into
domain entities through their from_persistence() factories.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from checkout.domain.errors import DuplicateError, NotFoundError
from checkout.domain.models import Customer, Delivery, DeliveryStatus, Product, utc_now
from checkout.domain.ports import (
    CustomerRepository,
    DeliveryRepository,
    ProductRepository,
    TransactionRepository,
)
from checkout.domain.transaction import Transaction, TransactionStatus

from .database import CustomerRecord, DeliveryRecord, ProductRecord, TransactionRecord

logger = logging.getLogger(__name__)


def _product_columns(product: Product) -> dict[str, Any]:
    return {
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "stock": product.stock,
        "image_url": product.image_url,
        "base_fee": product.base_fee,
        "is_active": product.is_active,
    }


def _transaction_columns(transaction: Transaction) -> dict[str, Any]:
    return {
        "customer_id": transaction.customer_id,
        "product_id": transaction.product_id,
        "product_amount": transaction.product_amount,
        "base_fee": transaction.base_fee,
        "delivery_fee": transaction.delivery_fee,
        "total_amount": transaction.total_amount,
        "status": transaction.status.value,
        "provider_transaction_id": transaction.provider_transaction_id,
        "provider_reference": transaction.provider_reference,
        "payment_method": transaction.payment_method.value if transaction.payment_method else None,
        "card_last_four": transaction.card_last_four,
        "card_brand": transaction.card_brand.value if transaction.card_brand else None,
        "created_at": transaction.created_at,
        "updated_at": transaction.updated_at,
        "completed_at": transaction.completed_at,
    }


def _delivery_columns(delivery: Delivery) -> dict[str, Any]:
    return {
        "transaction_id": delivery.transaction_id,
        "address": delivery.address,
        "city": delivery.city,
        "postal_code": delivery.postal_code,
        "phone": delivery.phone,
        "delivery_fee": delivery.delivery_fee,
        "status": delivery.status.value,
        "created_at": delivery.created_at,
        "updated_at": delivery.updated_at,
    }


class SqlProductRepository(ProductRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_all(self) -> list[Product]:
        result = await self.session.execute(select(ProductRecord).order_by(ProductRecord.id))
        return [Product.from_persistence(r.to_row()) for r in result.scalars()]

    async def find_available(self) -> list[Product]:
        stmt = (
            select(ProductRecord)
            .where(ProductRecord.is_active.is_(True), ProductRecord.stock > 0)
            .order_by(ProductRecord.id)
        )
        result = await self.session.execute(stmt)
        return [Product.from_persistence(r.to_row()) for r in result.scalars()]

    async def find_by_id(self, product_id: int) -> Product | None:
        record = await self.session.get(ProductRecord, product_id)
        return Product.from_persistence(record.to_row()) if record else None

    async def save(self, product: Product) -> Product:
        if product.id == 0:
            record = ProductRecord(**_product_columns(product))
            self.session.add(record)
        else:
            record = await self.session.get(ProductRecord, product.id)
            if record is None:
                raise NotFoundError(f"Product {product.id} not found")
            for key, value in _product_columns(product).items():
                setattr(record, key, value)

        await self.session.commit()
        await self.session.refresh(record)
        return Product.from_persistence(record.to_row())

    async def update_stock(self, product_id: int, new_stock: int) -> Product:
        record = await self.session.get(ProductRecord, product_id)
        if record is None:
            raise NotFoundError(f"Product {product_id} not found")

        record.stock = new_stock
        await self.session.commit()
        await self.session.refresh(record)
        return Product.from_persistence(record.to_row())


class SqlCustomerRepository(CustomerRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, customer_id: int) -> Customer | None:
        record = await self.session.get(CustomerRecord, customer_id)
        return Customer.from_persistence(record.to_row()) if record else None

    async def find_by_email(self, email: str) -> Customer | None:
        stmt = select(CustomerRecord).where(CustomerRecord.email == email.strip().lower())
        record = (await self.session.execute(stmt)).scalar_one_or_none()
        return Customer.from_persistence(record.to_row()) if record else None

    async def save(self, customer: Customer) -> Customer:
        if customer.id == 0:
            record = CustomerRecord(
                name=customer.name,
                email=customer.email,
                phone=customer.phone,
                created_at=customer.created_at,
            )
            self.session.add(record)
        else:
            record = await self.session.get(CustomerRecord, customer.id)
            if record is None:
                raise NotFoundError(f"Customer {customer.id} not found")
            record.name = customer.name
            record.email = customer.email
            record.phone = customer.phone

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateError(f"Customer with email {customer.email} already exists") from e
        await self.session.refresh(record)
        return Customer.from_persistence(record.to_row())


class SqlTransactionRepository(TransactionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _find(self, *conditions) -> list[Transaction]:
        stmt = (
            select(TransactionRecord)
            .where(*conditions)
            .order_by(TransactionRecord.created_at.desc(), TransactionRecord.id.desc())
        )
        result = await self.session.execute(stmt)
        return [Transaction.from_persistence(r.to_row()) for r in result.scalars()]

    async def find_all(self) -> list[Transaction]:
        return await self._find()

    async def find_by_id(self, transaction_id: int) -> Transaction | None:
        record = await self.session.get(TransactionRecord, transaction_id)
        return Transaction.from_persistence(record.to_row()) if record else None

    async def find_by_status(self, status: TransactionStatus) -> list[Transaction]:
        return await self._find(TransactionRecord.status == status.value)

    async def find_by_provider_reference(self, reference: str) -> Transaction | None:
        found = await self._find(TransactionRecord.provider_reference == reference)
        return found[0] if found else None

    async def save(self, transaction: Transaction) -> Transaction:
        if transaction.id != 0:
            return await self.update(transaction)

        record = TransactionRecord(**_transaction_columns(transaction))
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        logger.debug(f"Transaction {record.id} inserted")
        return Transaction.from_persistence(record.to_row())

    async def update(self, transaction: Transaction) -> Transaction:
        record = await self.session.get(TransactionRecord, transaction.id)
        if record is None:
            raise NotFoundError(f"Transaction {transaction.id} not found")

        for key, value in _transaction_columns(transaction).items():
            setattr(record, key, value)
        record.updated_at = utc_now()

        await self.session.commit()
        await self.session.refresh(record)
        return Transaction.from_persistence(record.to_row())


class SqlDeliveryRepository(DeliveryRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_transaction_id(self, transaction_id: int) -> Delivery | None:
        stmt = select(DeliveryRecord).where(DeliveryRecord.transaction_id == transaction_id)
        record = (await self.session.execute(stmt)).scalar_one_or_none()
        return Delivery.from_persistence(record.to_row()) if record else None

    async def find_by_status(self, status: DeliveryStatus) -> list[Delivery]:
        stmt = (
            select(DeliveryRecord)
            .where(DeliveryRecord.status == status.value)
            .order_by(DeliveryRecord.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [Delivery.from_persistence(r.to_row()) for r in result.scalars()]

    async def save(self, delivery: Delivery) -> Delivery:
        if delivery.id == 0:
            record = DeliveryRecord(**_delivery_columns(delivery))
            self.session.add(record)
        else:
            record = await self.session.get(DeliveryRecord, delivery.id)
            if record is None:
                raise NotFoundError(f"Delivery {delivery.id} not found")
            for key, value in _delivery_columns(delivery).items():
                setattr(record, key, value)

        await self.session.commit()
        await self.session.refresh(record)
        return Delivery.from_persistence(record.to_row())
