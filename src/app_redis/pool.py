"""Redis connection pool bound to one identity and one event loop."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from redis.asyncio import BlockingConnectionPool, Redis
from redis.asyncio.client import PubSub

from app_redis.config.settings import RedisConfiguration
from app_redis.identity import RedisID


logger = logging.getLogger(__name__)


class RedisConnectionPool:
    """Pooled Redis client for one identity on one event loop.

    Wraps a ``BlockingConnectionPool`` so that acquiring a connection from
    an exhausted pool waits up to ``connection_retry_timeout`` seconds and
    then fails with ``redis.exceptions.ConnectionError``.

    Nothing connects until the first command is sent.

    Args:
        redis_id: Identity the pool serves
        configuration: Backend configuration
        loop: Event loop the pool is bound to
    """

    def __init__(
        self,
        redis_id: RedisID,
        configuration: RedisConfiguration,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.redis_id = redis_id
        self.configuration = configuration
        self.loop = loop

        self._pool = BlockingConnectionPool(**configuration.connection_kwargs())
        self._redis = Redis(connection_pool=self._pool)

        logger.debug(
            "RedisConnectionPool created",
            extra={
                "redis_id": str(redis_id),
                "redis_url": configuration.safe_url,
                "max_connections": configuration.pool.maximum_connection_count,
            },
        )

    @property
    def client(self) -> Redis:
        """Client that borrows a pooled connection per command."""
        return self._redis

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[Redis]:
        """Exclusive use of one physical connection.

        Commands sent through the yielded client run on the same connection
        in issue order, which makes MULTI/EXEC and WATCH usable. The
        connection goes back to the pool however the block exits.

        Example:
            async with pool.lease() as conn:
                await conn.execute_command("MULTI")
                await conn.execute_command("INCR", "counter")
                await conn.execute_command("EXEC")
        """
        leased = self._redis.client()
        await leased.initialize()
        try:
            yield leased
        finally:
            await leased.aclose()

    def pubsub(self) -> PubSub:
        """PubSub object that pins its own connection from this pool."""
        return self._redis.pubsub()

    async def aclose(self) -> None:
        """Close the client and disconnect every pooled connection."""
        logger.info(
            "Closing Redis connection pool",
            extra={"redis_id": str(self.redis_id)},
        )
        await self._redis.aclose()
        await self._pool.disconnect()

    def get_pool_info(self) -> Dict[str, Any]:
        """Information about the pool for diagnostics."""
        return {
            "redis_id": str(self.redis_id),
            "redis_url": self.configuration.safe_url,
            "max_connections": self.configuration.pool.maximum_connection_count,
            "connection_retry_timeout": self.configuration.pool.connection_retry_timeout,
        }
