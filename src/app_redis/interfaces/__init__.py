"""Abstract interfaces shared across the Redis integration.

Allows dependency injection for testability and flexibility.
All concrete implementations must honor these contracts.
"""
from abc import abstractmethod
from datetime import timedelta
from typing import Any, AsyncContextManager, Dict, Optional, Protocol, Type, TypeVar, Union

T = TypeVar("T")

CacheExpirationTime = Union[int, float, timedelta]


# ==================== Redis Interfaces ====================

class IRedisPool(Protocol):
    """Protocol for a pooled Redis client bound to one identity and loop.

    Implementations: RedisConnectionPool, InMemoryConnectionPool.
    """

    @property
    @abstractmethod
    def client(self) -> Any:
        """Client that borrows a pooled connection per command."""
        ...

    @abstractmethod
    def lease(self) -> AsyncContextManager[Any]:
        """Exclusive use of one connection for the duration of a block."""
        ...

    @abstractmethod
    def pubsub(self) -> Any:
        """PubSub object pinned to its own connection."""
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Disconnect every connection."""
        ...

    @abstractmethod
    def get_pool_info(self) -> Dict[str, Any]:
        """Diagnostic information about the pool."""
        ...


# ==================== Cache Interfaces ====================

class ICache(Protocol):
    """Protocol for the application's key/value cache.

    Implementations: RedisCache, MemoryCache.
    """

    @abstractmethod
    async def get(self, key: str, as_type: Optional[Type[T]] = None) -> Optional[T]:
        """Get a value from cache.

        Args:
            key: Cache key
            as_type: Type to decode the stored value into

        Returns:
            Cached value or None if not found
        """
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        expires_in: Optional[CacheExpirationTime] = None,
    ) -> None:
        """Set a value in cache. A None value deletes the key.

        Args:
            key: Cache key
            value: Value to cache
            expires_in: Optional lifetime (seconds or timedelta)
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key from cache."""
        ...

    @abstractmethod
    def for_request(self, request: Any) -> "ICache":
        """Equivalent cache bound to a request's logger and loop."""
        ...
