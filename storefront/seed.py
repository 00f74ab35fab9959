import asyncio
import logging

import sqlalchemy as sa

from .common.config import settings
from .common.database import create_engine, create_session_factory, init_db
from .inventory.model import Product

log = logging.getLogger(__name__)


async def seed() -> None:
    engine = create_engine(settings)
    try:
        await init_db(engine, settings)
        async with create_session_factory(engine)() as session:
            res = await session.execute(sa.select(Product).where(Product.deleted_at.is_(None)).order_by(Product.id))
            products = res.scalars().all()
        log.info("Seed complete. %s products in catalog.", len(products))
        for p in products:
            log.info("  - %s: %s (stock: %s, price_cents: %s)", p.id, p.name, p.stock, p.price_cents)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())
