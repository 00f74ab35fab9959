import json
import logging
from typing import Iterable, Optional, Tuple

from redis.exceptions import RedisError

from ..common.redis_client import RedisConnector

_logger = logging.getLogger(__name__)


class StockPublisher:
    """Announces committed stock levels on a Redis channel.

    Publishing is best effort: a Redis outage is logged and swallowed so a
    committed order or product update is never reported as failed.
    """

    def __init__(self, redis: Optional[RedisConnector], channel: str):
        self._redis = redis
        self._channel = channel

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def publish(self, product_id: int, stock: int) -> None:
        await self.publish_many([(product_id, stock)])

    async def publish_many(self, levels: Iterable[Tuple[int, int]]) -> None:
        if self._redis is None:
            return
        try:
            r = await self._redis.get()
            for product_id, stock in levels:
                await r.publish(self._channel, json.dumps({"product_id": product_id, "stock": stock}))
                _logger.info("Published stock update | product_id=%s stock=%s channel=%s", product_id, stock, self._channel)
        except (RedisError, OSError) as e:
            _logger.warning("Stock update not published | err=%s", e)
