import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..common.database import utcnow
from ..common.db import INTEGER_MAX
from ..common.errors import InvalidPayload, NoUpdatesProvided
from ..orders.model import Order
from .model import Product

_logger = logging.getLogger(__name__)

TEXT_FIELDS = ("name", "description", "image_url", "category")


@dataclass(frozen=True)
class StockReservation:
    product_id: int
    quantity: int
    price_cents: int
    remaining: int


def product_to_dict(prod: Product) -> Dict[str, Any]:
    return {
        "id": prod.id,
        "name": prod.name,
        "description": prod.description,
        "category": prod.category,
        "price_cents": prod.price_cents,
        "stock": prod.stock,
        "image_url": prod.image_url,
        "created_at": prod.created_at.isoformat() if prod.created_at else None,
    }


def parse_price_cents(value: Any) -> int:
    """Major-unit price (``12.5``) to integer cents, rounding half up."""
    if isinstance(value, bool) or value is None or value == "":
        raise InvalidPayload("Invalid price.")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidPayload("Invalid price.") from None
    if not amount.is_finite() or amount < 0:
        raise InvalidPayload("Invalid price.")
    try:
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise InvalidPayload("Invalid price.") from None
    if cents > INTEGER_MAX:
        raise InvalidPayload("Invalid price.")
    return cents


def parse_stock(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidPayload("Invalid stock.")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidPayload("Invalid stock.")
        value = int(text)
    if not isinstance(value, int) or not 0 <= value <= INTEGER_MAX:
        raise InvalidPayload("Invalid stock.")
    return value


def _live():
    return Product.deleted_at.is_(None)


class InventoryStore:
    """Product table access. Every method opens its own unit of work,
    except ``reserve_stock`` which runs inside the caller's session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        async with self._session_factory() as session:
            res = await session.execute(sa.select(Product).where(Product.id == product_id, _live()))
            prod = res.scalar_one_or_none()
            return product_to_dict(prod) if prod else None

    async def list_products(self) -> List[Dict[str, Any]]:
        async with self._session_factory() as session:
            stmt = sa.select(Product).where(_live()).order_by(Product.created_at.desc(), Product.id.desc())
            res = await session.execute(stmt)
            return [product_to_dict(prod) for prod in res.scalars().all()]

    async def reserve_stock(self, session: AsyncSession, product_id: int, quantity: int) -> Optional[StockReservation]:
        """Decrement stock if at least ``quantity`` is available, in one statement.

        Returns the unit price and remaining stock as read by the UPDATE
        itself, or None when the row did not match (absent, deleted or short).
        """
        stmt = (
            sa.update(Product)
            .where(Product.id == product_id, _live(), Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .returning(Product.price_cents, Product.stock)
            .execution_options(synchronize_session=False)
        )
        row = (await session.execute(stmt)).first()
        if row is None:
            return None
        return StockReservation(product_id, quantity, int(row[0]), int(row[1]))

    async def exists(self, session: AsyncSession, product_id: int) -> bool:
        res = await session.execute(sa.select(Product.id).where(Product.id == product_id, _live()))
        return res.first() is not None

    async def conditional_decrement_stock(self, product_id: int, quantity: int) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                reservation = await self.reserve_stock(session, product_id, quantity)
        return reservation is not None

    async def create_product(self, fields: Mapping[str, Any]) -> int:
        values: Dict[str, Any] = {}
        for name in TEXT_FIELDS:
            text = fields.get(name)
            if not isinstance(text, str) or not text.strip():
                raise InvalidPayload("Missing product fields.")
            values[name] = text
        values["price_cents"] = parse_price_cents(fields.get("price"))
        values["stock"] = parse_stock(fields.get("stock"))

        async with self._session_factory() as session:
            async with session.begin():
                prod = Product(created_at=utcnow(), **values)
                session.add(prod)
                await session.flush()
                product_id = int(prod.id)
        _logger.info("Product created | product_id=%s stock=%s", product_id, values["stock"])
        return product_id

    async def update_product(self, product_id: int, fields: Mapping[str, Any]) -> bool:
        values: Dict[str, Any] = {}
        for name in TEXT_FIELDS:
            text = fields.get(name)
            if isinstance(text, str) and text.strip():
                values[name] = text
        if fields.get("price") is not None:
            values["price_cents"] = parse_price_cents(fields["price"])
        if fields.get("stock") is not None:
            values["stock"] = parse_stock(fields["stock"])
        if not values:
            raise NoUpdatesProvided()

        async with self._session_factory() as session:
            async with session.begin():
                stmt = (
                    sa.update(Product)
                    .where(Product.id == product_id, _live())
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                res = await session.execute(stmt)
                updated = res.rowcount or 0
        _logger.info("Product update | product_id=%s fields=%s updated=%s", product_id, sorted(values), updated)
        return updated > 0

    async def delete_product(self, product_id: int) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                stmt = (
                    sa.update(Product)
                    .where(Product.id == product_id, _live())
                    .values(deleted_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                res = await session.execute(stmt)
                deleted = res.rowcount or 0
        _logger.info("Product delete | product_id=%s deleted=%s", product_id, deleted)
        return deleted > 0

    async def summary(self, now: Optional[datetime] = None) -> Dict[str, int]:
        since = (now or utcnow()) - timedelta(hours=24)
        async with self._session_factory() as session:
            products = await session.execute(
                sa.select(sa.func.count(Product.id), sa.func.coalesce(sa.func.sum(Product.stock), 0)).where(_live())
            )
            product_count, stock_count = products.one()
            orders = await session.execute(sa.select(sa.func.count(Order.id)).where(Order.created_at >= since))
            order_count = orders.scalar() or 0
        return {
            "product_count": int(product_count),
            "stock_count": int(stock_count),
            "order_count": int(order_count),
        }
