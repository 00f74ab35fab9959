import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..common.database import utcnow
from ..common.db import INTEGER_MAX
from ..common.errors import InsufficientStock, InvalidPayload, ProductNotFound, StoreFailure, StorefrontError
from ..inventory.model import Product
from ..inventory.service import InventoryStore, StockReservation
from ..realtime.publisher import StockPublisher
from .model import ORDER_STATUS_PLACED, Order, OrderItem

_logger = logging.getLogger(__name__)

ORDERS_PLACED = Counter("storefront_orders_placed_total", "Orders committed")
ORDER_REJECTIONS = Counter("storefront_order_rejections_total", "Orders rejected", ["reason"])


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class PlacedOrder:
    order_id: int
    total_cents: int


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            return None
        value = int(text)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and 0 < value <= INTEGER_MAX:
        return value
    return None


def validate_order(customer_name: Any, email: Any, items: Any) -> List[LineItem]:
    """Check the checkout payload without touching the store."""
    if not isinstance(customer_name, str) or not customer_name.strip():
        raise InvalidPayload("Invalid order payload.")
    if not isinstance(email, str) or not email.strip():
        raise InvalidPayload("Invalid order payload.")
    if not isinstance(items, list) or not items:
        raise InvalidPayload("Invalid order payload.")

    lines = []
    for item in items:
        if not isinstance(item, dict):
            raise InvalidPayload("Invalid item payload.")
        product_id = _positive_int(item.get("productId", item.get("product_id")))
        quantity = _positive_int(item.get("quantity"))
        if product_id is None or quantity is None:
            raise InvalidPayload("Invalid item payload.")
        lines.append(LineItem(product_id, quantity))
    return lines


class OrderEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        inventory: InventoryStore,
        publisher: Optional[StockPublisher] = None,
    ):
        self._session_factory = session_factory
        self._inventory = inventory
        self._publisher = publisher

    async def place_order(self, customer_name: Any, email: Any, items: Any) -> PlacedOrder:
        try:
            lines = validate_order(customer_name, email, items)
        except InvalidPayload:
            ORDER_REJECTIONS.labels(reason="invalid_payload").inc()
            raise

        try:
            placed, reservations = await self._commit_order(customer_name.strip(), email.strip(), lines)
        except StorefrontError as e:
            ORDER_REJECTIONS.labels(reason=e.code).inc()
            _logger.info("Order rejected | reason=%s", e.code)
            raise
        except SQLAlchemyError as e:
            ORDER_REJECTIONS.labels(reason="store_failure").inc()
            _logger.error("Order transaction aborted | err=%s", e)
            raise StoreFailure("place_order") from e

        ORDERS_PLACED.inc()
        _logger.info("Order placed | order_id=%s total_cents=%s lines=%s", placed.order_id, placed.total_cents, len(lines))

        if self._publisher is not None:
            # Last reservation per product carries its final stock level
            levels = {r.product_id: r.remaining for r in reservations}
            await self._publisher.publish_many(levels.items())
        return placed

    async def _commit_order(
        self, customer_name: str, email: str, lines: Sequence[LineItem],
    ) -> Tuple[PlacedOrder, List[StockReservation]]:
        async with self._session_factory() as session:
            async with session.begin():
                total = 0
                reservations: List[StockReservation] = []
                for line in lines:
                    reservation = await self._inventory.reserve_stock(session, line.product_id, line.quantity)
                    if reservation is None:
                        if not await self._inventory.exists(session, line.product_id):
                            raise ProductNotFound(line.product_id)
                        raise InsufficientStock(line.product_id, line.quantity)
                    total += reservation.price_cents * reservation.quantity
                    reservations.append(reservation)

                order = Order(
                    customer_name=customer_name,
                    email=email,
                    total_cents=total,
                    status=ORDER_STATUS_PLACED,
                    created_at=utcnow(),
                )
                session.add(order)
                await session.flush()
                order_id = int(order.id)

                session.add_all([
                    OrderItem(
                        order_id=order_id,
                        product_id=r.product_id,
                        quantity=r.quantity,
                        price_cents=r.price_cents,
                    )
                    for r in reservations
                ])
        return PlacedOrder(order_id, total), reservations

    async def list_recent_orders(self, limit: int = 50) -> List[Dict[str, Any]]:
        async with self._session_factory() as session:
            res = await session.execute(
                sa.select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)
            )
            orders = res.scalars().all()
            if not orders:
                return []

            item_rows = await session.execute(
                sa.select(
                    OrderItem.order_id,
                    OrderItem.product_id,
                    OrderItem.quantity,
                    OrderItem.price_cents,
                    Product.name,
                )
                .outerjoin(Product, Product.id == OrderItem.product_id)
                .where(OrderItem.order_id.in_([o.id for o in orders]))
                .order_by(OrderItem.id)
            )
            items_by_order: Dict[int, List[Dict[str, Any]]] = {}
            for order_id, product_id, quantity, price_cents, name in item_rows.all():
                items_by_order.setdefault(order_id, []).append({
                    "order_id": order_id,
                    "product_id": product_id,
                    "name": name,
                    "quantity": quantity,
                    "price_cents": price_cents,
                })

        return [
            {
                "id": o.id,
                "customer_name": o.customer_name,
                "email": o.email,
                "total_cents": o.total_cents,
                "status": o.status,
                "created_at": o.created_at.isoformat(),
                "items": items_by_order.get(o.id, []),
            }
            for o in orders
        ]
