import asyncio
import logging
import ssl
from typing import Optional

from redis.asyncio import Redis

from .config import Settings

_logger = logging.getLogger(__name__)


class RedisConnector:
    """Lazily connects to Redis on first use and hands out one shared client."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._redis: Optional[Redis] = None
        self._lock = asyncio.Lock()

    async def get(self) -> Redis:
        if self._redis is None:
            async with self._lock:
                if self._redis is None:
                    settings = self._settings
                    conn_kwargs = {
                        "host": settings.REDIS_HOST,
                        "port": settings.REDIS_PORT,
                        "username": settings.REDIS_USERNAME or None,
                        "password": settings.REDIS_PASSWORD or None,
                        "db": settings.REDIS_DB,
                        "decode_responses": True,
                    }
                    if settings.REDIS_SSL:
                        conn_kwargs.update(
                            {
                                "ssl": True,
                                # relax cert verification for local/dev
                                "ssl_cert_reqs": ssl.CERT_NONE,
                            }
                        )
                    client = Redis(**conn_kwargs)
                    try:
                        await client.ping()
                    except Exception as e:
                        _logger.error("Failed to connect to Redis: %s", str(e))
                        await client.aclose()
                        raise
                    _logger.info(
                        "Connected to Redis at %s:%s (SSL=%s)",
                        settings.REDIS_HOST,
                        settings.REDIS_PORT,
                        settings.REDIS_SSL,
                    )
                    self._redis = client
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            try:
                await self._redis.aclose()
            finally:
                self._redis = None
