"""
Append-only usage sinks.

A sink receives UsageTelemetry records from the emitter's worker task.
Records are never updated once appended.
"""

from typing import Optional, Protocol

import structlog
from redis.asyncio import ConnectionPool as AsyncConnectionPool
from redis.asyncio import Redis as AsyncRedis

from generation_layer.config import Settings
from generation_layer.models.telemetry_models import UsageTelemetry

logger = structlog.get_logger(__name__)


class UsageSink(Protocol):
    async def append(self, record: UsageTelemetry) -> None:
        ...

    async def close(self) -> None:
        ...


class InMemoryUsageSink:
    """Keeps records in a list. Used when no Redis is configured."""

    def __init__(self) -> None:
        self.records: list[UsageTelemetry] = []

    async def append(self, record: UsageTelemetry) -> None:
        self.records.append(record)

    async def close(self) -> None:
        return None


class RedisClient:
    """Async Redis client sharing one connection pool per process."""

    _async_pool: Optional[AsyncConnectionPool] = None

    @classmethod
    def get_async_client(cls, settings: Settings) -> AsyncRedis:
        """
        Get asynchronous Redis client with connection pooling.

        Args:
            settings: Application settings

        Returns:
            AsyncRedis client instance
        """
        if cls._async_pool is None:
            cls._async_pool = AsyncConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            logger.info("Initialized Redis async connection pool")

        return AsyncRedis(connection_pool=cls._async_pool)

    @classmethod
    async def close_async_pool(cls) -> None:
        """Close async connection pool (cleanup on shutdown)."""
        if cls._async_pool is not None:
            await cls._async_pool.disconnect()
            cls._async_pool = None
            logger.info("Closed Redis async connection pool")


class RedisUsageSink:
    """RPUSH each record as JSON onto a Redis list."""

    def __init__(self, client: AsyncRedis, key: str = "generation_layer:usage"):
        self.client = client
        self.key = key

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisUsageSink":
        return cls(RedisClient.get_async_client(settings), settings.TELEMETRY_REDIS_KEY)

    async def append(self, record: UsageTelemetry) -> None:
        await self.client.rpush(self.key, record.model_dump_json())

    async def close(self) -> None:
        await RedisClient.close_async_pool()
