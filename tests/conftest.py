"""Shared fixtures: an isolated file-backed SQLite store per test."""

from datetime import datetime, timedelta

import pytest
import sqlalchemy as sa

from storefront.app import create_app
from storefront.auth.service import SessionAuthority
from storefront.common.config import Settings
from storefront.common.database import create_engine, create_session_factory, init_db
from storefront.inventory.service import InventoryStore
from storefront.orders.model import Order, OrderItem
from storefront.orders.service import OrderEngine

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin123"


class RecordingPublisher:
    """Stands in for StockPublisher; remembers every level it was given."""

    def __init__(self):
        self.published = []

    async def publish(self, product_id, stock):
        self.published.append((product_id, stock))

    async def publish_many(self, levels):
        for product_id, stock in levels:
            self.published.append((product_id, stock))


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DB_URL=f"sqlite+aiosqlite:///{tmp_path / 'store.db'}",
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        BCRYPT_ROUNDS=4,
        SEED_PRODUCTS=False,
        REDIS_ENABLED=False,
    )


@pytest.fixture
async def engine(settings):
    engine = create_engine(settings)
    await init_db(engine, settings)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def inventory(session_factory):
    return InventoryStore(session_factory)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def orders(session_factory, inventory, publisher):
    return OrderEngine(session_factory, inventory, publisher)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def authority(session_factory, clock):
    return SessionAuthority(session_factory, ttl=timedelta(days=7), clock=clock, bcrypt_rounds=4)


@pytest.fixture
async def app(settings):
    app = create_app(settings)
    await init_db(app.db_engine, settings)
    yield app
    await app.db_engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


def product_fields(**overrides):
    fields = {
        "name": "Aurora Hoodie",
        "description": "Soft brushed fleece hoodie.",
        "image_url": "https://picsum.photos/seed/hoodie/600/600",
        "category": "Apparel",
        "price": "10.00",
        "stock": 5,
    }
    fields.update(overrides)
    return fields


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        res = await session.execute(sa.select(sa.func.count()).select_from(model))
        return int(res.scalar())


async def count_orders(session_factory) -> int:
    return await count_rows(session_factory, Order)


async def count_order_items(session_factory) -> int:
    return await count_rows(session_factory, OrderItem)
