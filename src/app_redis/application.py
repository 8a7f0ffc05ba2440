"""Minimal host application and request objects.

``Application`` owns everything process-wide: a typed storage container,
named locks, the Redis registry, the pub/sub clients and the selected cache.
``Request`` is one unit of work with its own id, logger and event loop.
"""
import asyncio
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, Union

from app_redis.caches import Caches
from app_redis.client import RedisClient
from app_redis.config.loader import load_redis_configurations
from app_redis.config.settings import RedisConfiguration
from app_redis.identity import RedisID
from app_redis.interfaces import ICache
from app_redis.logging.context import ContextLoggerAdapter
from app_redis.pubsub import PubSubManager
from app_redis.storage import PoolFactory, RedisStorage


logger = logging.getLogger(__name__)


class Storage:
    """Values stored on the application, keyed by marker classes."""

    def __init__(self):
        self._values: Dict[Type, Any] = {}

    def get(self, key: Type, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: Type, value: Any) -> None:
        self._values[key] = value

    def contains(self, key: Type) -> bool:
        return key in self._values

    def __contains__(self, key: Type) -> bool:
        return self.contains(key)


class Locks:
    """Named ``threading.Lock`` objects, one per key, created on demand."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Any, threading.Lock] = {}

    def lock(self, key: Any) -> threading.Lock:
        with self._guard:
            existing = self._locks.get(key)
            if existing is None:
                existing = self._locks[key] = threading.Lock()
            return existing


class RedisStorageKey:
    """Storage key of the application's RedisStorage."""


class Application:
    """Process-wide owner of Redis state.

    Args:
        logger: Logger for application-level Redis clients
        redis_pool_factory: Builds pools from (identity, configuration,
            loop); replaced in tests with an in-memory pool

    Example:
        app = Application()
        app.redis().configuration = RedisConfiguration.from_url("redis://localhost:6379/0")
        app.caches.use(CacheProviders.redis())

        async with app:
            await app.cache.set("greeting", "hello", expires_in=60)
    """

    def __init__(
        self,
        logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
        redis_pool_factory: Optional[PoolFactory] = None,
    ):
        self.logger = logger if logger is not None else logging.getLogger("app_redis")
        self.storage = Storage()
        self.locks = Locks()
        self.caches = Caches(self)
        self.pubsub = PubSubManager(self)
        self._redis_pool_factory = redis_pool_factory

    @property
    def redis_storage(self) -> RedisStorage:
        """Configurations and pools of every Redis identity."""
        existing = self.storage.get(RedisStorageKey)
        if existing is not None:
            return existing

        with self.locks.lock(RedisStorageKey):
            existing = self.storage.get(RedisStorageKey)
            if existing is None:
                existing = RedisStorage(self.locks, pool_factory=self._redis_pool_factory)
                self.storage.set(RedisStorageKey, existing)
            return existing

    def redis(self, redis_id: RedisID = RedisID.DEFAULT) -> RedisClient:
        """Client for a Redis identity, logging to the application logger."""
        return RedisClient(self, RedisID(redis_id), logger=self.logger)

    @property
    def cache(self) -> ICache:
        """The selected cache; in-memory unless another was selected."""
        return self.caches.cache

    def configure_redis(
        self,
        configurations: Union[Mapping[str, RedisConfiguration], str, Path],
    ) -> None:
        """Register several identities at once.

        Args:
            configurations: Identity to configuration mapping, or the path of
                a YAML file with a ``redis`` section
        """
        if isinstance(configurations, (str, Path)):
            configurations = load_redis_configurations(configurations)

        for redis_id, configuration in configurations.items():
            self.redis_storage.use(configuration, as_id=RedisID(redis_id))

    def make_request(
        self,
        request_id: Optional[str] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Request":
        """New unit of work bound to this application."""
        return Request(self, request_id=request_id, loop=loop)

    async def shutdown(self) -> None:
        """Close pub/sub connections, then every pool."""
        logger.info("Shutting down Redis integration")
        try:
            await self.pubsub.aclose()
        finally:
            if self.storage.contains(RedisStorageKey):
                await self.redis_storage.aclose()

    async def __aenter__(self) -> "Application":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()


class Request:
    """One unit of work: its own id, logger and event loop.

    Clients and caches obtained from a request log with the request id and
    run on the request's loop.

    Args:
        application: Owning application
        request_id: Identifier stamped on log records (generated when None)
        loop: Loop the request runs on; the running loop when None
    """

    def __init__(
        self,
        application: Application,
        request_id: Optional[str] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.application = application
        self.request_id = request_id or uuid.uuid4().hex
        self._loop = loop
        self.logger = ContextLoggerAdapter(
            application.logger,
            {"request_id": self.request_id},
        )

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def redis(self, redis_id: RedisID = RedisID.DEFAULT) -> RedisClient:
        """Client for a Redis identity, logging through this request."""
        return RedisClient(
            self.application,
            RedisID(redis_id),
            logger=self.logger,
            loop=self._loop,
        )

    @property
    def cache(self) -> ICache:
        """The application cache, bound to this request."""
        return self.application.cache.for_request(self)
