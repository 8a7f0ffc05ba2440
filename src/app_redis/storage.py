"""Per-application registry of Redis configurations and connection pools."""
import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from app_redis.config.settings import RedisConfiguration
from app_redis.exceptions.config import (
    RedisConfigurationLockedError,
    RedisNotConfiguredError,
)
from app_redis.identity import RedisID
from app_redis.interfaces import IRedisPool
from app_redis.pool import RedisConnectionPool

if TYPE_CHECKING:
    from app_redis.application import Locks


logger = logging.getLogger(__name__)

PoolFactory = Callable[[RedisID, RedisConfiguration, asyncio.AbstractEventLoop], IRedisPool]


class RedisPoolsKey:
    """Lock name guarding configuration changes and pool creation."""


class RedisStorage:
    """Configurations and pools for every Redis identity of an application.

    Holds at most one pool per (identity, event loop). Pools are created on
    first use under the application's named lock, with a lock-free fast
    path once a pool exists.

    The first pool created for an identity locks its configuration: any
    later ``use()`` for that identity raises RedisConfigurationLockedError.

    Args:
        locks: Named lock provider of the owning application
        pool_factory: Builds a pool from (identity, configuration, loop);
            defaults to RedisConnectionPool
    """

    def __init__(self, locks: "Locks", pool_factory: Optional[PoolFactory] = None):
        self._locks = locks
        self._pool_factory: PoolFactory = pool_factory or RedisConnectionPool
        self._configurations: Dict[RedisID, RedisConfiguration] = {}
        self._pools: Dict[Tuple[RedisID, asyncio.AbstractEventLoop], IRedisPool] = {}
        self._locked_ids: set = set()

    def use(
        self,
        configuration: RedisConfiguration,
        as_id: RedisID = RedisID.DEFAULT,
    ) -> None:
        """Register the configuration for an identity.

        Raises:
            RedisConfigurationLockedError: A pool already exists for the identity
        """
        redis_id = RedisID(as_id)
        with self._locks.lock(RedisPoolsKey):
            if redis_id in self._locked_ids:
                logger.error(
                    "Attempted to modify Redis configuration after first use",
                    extra={"redis_id": str(redis_id)},
                )
                raise RedisConfigurationLockedError(redis_id=redis_id)
            self._configurations[redis_id] = configuration

        logger.info(
            "Redis configuration registered",
            extra={"redis_id": str(redis_id), "redis_url": configuration.safe_url},
        )

    def configuration(self, redis_id: RedisID = RedisID.DEFAULT) -> Optional[RedisConfiguration]:
        """Configuration registered for an identity, or None."""
        return self._configurations.get(RedisID(redis_id))

    def ids(self) -> List[RedisID]:
        """Every identity with a registered configuration."""
        return list(self._configurations)

    def is_locked(self, redis_id: RedisID) -> bool:
        """Whether the identity's configuration can no longer change."""
        return RedisID(redis_id) in self._locked_ids

    def pool(self, loop: asyncio.AbstractEventLoop, redis_id: RedisID = RedisID.DEFAULT) -> IRedisPool:
        """Pool for an identity on an event loop, created on first use.

        Raises:
            RedisNotConfiguredError: No configuration registered for the identity
        """
        redis_id = RedisID(redis_id)
        key = (redis_id, loop)

        existing = self._pools.get(key)
        if existing is not None:
            return existing

        with self._locks.lock(RedisPoolsKey):
            existing = self._pools.get(key)
            if existing is not None:
                return existing

            configuration = self._configurations.get(redis_id)
            if configuration is None:
                logger.error(
                    "No Redis configuration for identity",
                    extra={"redis_id": str(redis_id)},
                )
                raise RedisNotConfiguredError(redis_id=redis_id)

            new_pool = self._pool_factory(redis_id, configuration, loop)
            self._pools[key] = new_pool
            self._locked_ids.add(redis_id)

        logger.info(
            "Redis connection pool created",
            extra={"redis_id": str(redis_id), "redis_url": configuration.safe_url},
        )
        return new_pool

    def pools(self, redis_id: Optional[RedisID] = None) -> List[IRedisPool]:
        """Live pools, optionally only those of one identity."""
        return [
            pool for (pool_id, _), pool in list(self._pools.items())
            if redis_id is None or pool_id == redis_id
        ]

    async def aclose(self) -> None:
        """Close every pool. Called on application shutdown."""
        with self._locks.lock(RedisPoolsKey):
            pools = list(self._pools.values())
            self._pools.clear()

        errors = []
        for pool in pools:
            try:
                await pool.aclose()
            except Exception as e:
                logger.error(f"Error closing Redis pool: {e}", exc_info=True)
                errors.append(e)

        logger.info("Redis pools closed", extra={"count": len(pools)})
        if errors:
            raise errors[0]
