import dataclasses

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from storefront.auth.model import User
from storefront.common.database import SAMPLE_PRODUCTS, create_engine, create_session_factory, init_db
from storefront.inventory.model import Product

from conftest import count_rows, product_fields


@pytest.mark.asyncio
async def test_init_db_seeds_once(settings):
    settings = dataclasses.replace(settings, SEED_PRODUCTS=True)
    engine = create_engine(settings)
    try:
        await init_db(engine, settings)
        await init_db(engine, settings)
        session_factory = create_session_factory(engine)
        assert await count_rows(session_factory, Product) == len(SAMPLE_PRODUCTS)
        assert await count_rows(session_factory, User) == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_stock_can_never_go_negative(inventory, session_factory):
    product_id = await inventory.create_product(product_fields(stock=1))
    with pytest.raises(IntegrityError):
        async with session_factory() as session:
            async with session.begin():
                await session.execute(
                    sa.update(Product).where(Product.id == product_id).values(stock=Product.stock - 2)
                )
    assert (await inventory.get_product(product_id))["stock"] == 1
