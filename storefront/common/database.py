import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings
from .db import Base
# Every model is imported so create_all sees its table
from ..auth.model import ROLE_ADMIN, AdminSession, User  # noqa: F401
from ..auth.passwords import hash_password
from ..inventory.model import Product
from ..orders.model import Order, OrderItem  # noqa: F401

_logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS: List[Dict[str, Any]] = [
    {"name": "Aurora Hoodie", "description": "Soft brushed fleece hoodie with structured seams and a matte finish.",
     "price_cents": 6500, "image_url": "https://picsum.photos/seed/hoodie/600/600", "stock": 18, "category": "Apparel"},
    {"name": "Glass Lantern", "description": "Hand-blown glass lantern with warm light diffusion for calm evenings.",
     "price_cents": 8200, "image_url": "https://picsum.photos/seed/lantern/600/600", "stock": 11, "category": "Home"},
    {"name": "Dune Carryall", "description": "Waxed canvas tote with reinforced straps and interior organizers.",
     "price_cents": 5400, "image_url": "https://picsum.photos/seed/tote/600/600", "stock": 20, "category": "Accessories"},
    {"name": "Studio Mug Set", "description": "Stackable ceramic mugs with a satin glaze and heat-safe silhouette.",
     "price_cents": 3200, "image_url": "https://picsum.photos/seed/mug/600/600", "stock": 30, "category": "Kitchen"},
    {"name": "Signal Headphones", "description": "Wireless over-ear headphones tuned for crisp highs and deep lows.",
     "price_cents": 12900, "image_url": "https://picsum.photos/seed/headphones/600/600", "stock": 9, "category": "Tech"},
    {"name": "Arc Desk Lamp", "description": "Minimalist desk lamp with adjustable arm and warm LED glow.",
     "price_cents": 7600, "image_url": "https://picsum.photos/seed/lamp/600/600", "stock": 13, "category": "Home"},
    {"name": "Terra Sneakers", "description": "Lightweight sneakers crafted with breathable knit and soft cushioning.",
     "price_cents": 9800, "image_url": "https://picsum.photos/seed/sneakers/600/600", "stock": 14, "category": "Footwear"},
    {"name": "Focus Notebook", "description": "Hardcover notebook with dot grid pages and linen-bound spine.",
     "price_cents": 2400, "image_url": "https://picsum.photos/seed/notebook/600/600", "stock": 40, "category": "Stationery"},
]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_engine(settings: Settings) -> AsyncEngine:
    is_sqlite = settings.DB_URL.startswith("sqlite")
    connect_args = {"timeout": settings.DB_BUSY_TIMEOUT} if is_sqlite else {}
    engine = create_async_engine(
        settings.DB_URL, echo=settings.DB_ECHO, connect_args=connect_args,
    )
    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_db(engine: AsyncEngine, settings: Settings) -> None:
    if engine.dialect.name == "sqlite":
        # journal_mode persists in the database file
        async with engine.connect() as conn:
            await conn.exec_driver_sql("PRAGMA journal_mode=WAL")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        async with session.begin():
            await _seed_admin(session, settings)
            if settings.SEED_PRODUCTS:
                await _seed_products(session)


async def _seed_admin(session: AsyncSession, settings: Settings) -> None:
    res = await session.execute(sa.select(User.id).where(User.email == settings.ADMIN_EMAIL))
    if res.first():
        return
    session.add(User(
        email=settings.ADMIN_EMAIL,
        password_hash=hash_password(settings.ADMIN_PASSWORD, settings.BCRYPT_ROUNDS),
        role=ROLE_ADMIN,
        created_at=utcnow(),
    ))
    _logger.info("Seeded admin user | email=%s", settings.ADMIN_EMAIL)


async def _seed_products(session: AsyncSession) -> None:
    res = await session.execute(sa.select(sa.func.count(Product.id)))
    count = int(res.scalar() or 0)
    if count > 0:
        return
    now = utcnow()
    session.add_all([Product(created_at=now, **fields) for fields in SAMPLE_PRODUCTS])
    _logger.info("Seeded catalog | products=%s", len(SAMPLE_PRODUCTS))
