"""Cache selection for an application."""
import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple, Type, TypeVar

from app_redis.cache import RedisCache
from app_redis.client import expiration_seconds
from app_redis.coders import CacheDecoder, CacheEncoder
from app_redis.identity import RedisID
from app_redis.interfaces import CacheExpirationTime, ICache

if TYPE_CHECKING:
    from app_redis.application import Application, Request


logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheFactory = Callable[["Application"], ICache]


class MemoryCache:
    """Process-local cache with passive expiry.

    The default cache of an application that has not selected another one.
    Values are kept as given, not encoded, so ``as_type`` is ignored.

    Args:
        clock: Monotonic time source in seconds
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    async def get(self, key: str, as_type: Optional[Type[T]] = None) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, deadline = entry
            if deadline is not None and deadline <= self._clock():
                del self._entries[key]
                return None
            return value

    async def set(
        self,
        key: str,
        value: Any,
        expires_in: Optional[CacheExpirationTime] = None,
    ) -> None:
        if value is None:
            await self.delete(key)
            return
        deadline = None
        if expires_in is not None:
            deadline = self._clock() + expiration_seconds(expires_in)
        with self._lock:
            self._entries[key] = (value, deadline)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def for_request(self, request: "Request") -> "MemoryCache":
        return self


class CacheProviders:
    """Factories for the caches an application can select.

    Example:
        app.caches.use(CacheProviders.redis(RedisID("cache")))
        await app.cache.set("key", "value")
    """

    @staticmethod
    def redis(
        redis_id: RedisID = RedisID.DEFAULT,
        encoder: Optional[CacheEncoder] = None,
        decoder: Optional[CacheDecoder] = None,
    ) -> CacheFactory:
        """Redis cache for an identity, with JSON coders unless given."""
        redis_id = RedisID(redis_id)

        def make(application: "Application") -> ICache:
            return application.caches.redis(redis_id, encoder=encoder, decoder=decoder)

        return make

    @staticmethod
    def memory() -> CacheFactory:
        """A fresh in-process cache."""
        return lambda application: MemoryCache()


class Caches:
    """Cache registry of an application.

    Holds the selected cache factory and builds the cache once, lazily.
    """

    def __init__(self, application: "Application"):
        self.application = application
        self._factory: CacheFactory = CacheProviders.memory()
        self._cache: Optional[ICache] = None

    def use(self, provider: CacheFactory) -> None:
        """Select the cache returned by ``app.cache``."""
        self._factory = provider
        self._cache = None
        logger.info(
            "Application cache selected",
            extra={"provider": getattr(provider, "__qualname__", repr(provider))},
        )

    @property
    def cache(self) -> ICache:
        """Selected cache, built on first access."""
        if self._cache is None:
            self._cache = self._factory(self.application)
        return self._cache

    def redis(
        self,
        redis_id: RedisID = RedisID.DEFAULT,
        encoder: Optional[CacheEncoder] = None,
        decoder: Optional[CacheDecoder] = None,
    ) -> RedisCache:
        """RedisCache over an identity of this application."""
        return RedisCache(encoder, decoder, self.application.redis(redis_id))
