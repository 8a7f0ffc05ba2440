"""Redis-backed implementation of the application cache."""
import logging
from typing import TYPE_CHECKING, Any, Optional, Type, TypeVar

from app_redis.client import RedisClient, expiration_seconds
from app_redis.coders import (
    CacheDecoder,
    CacheEncoder,
    JSONCacheDecoder,
    JSONCacheEncoder,
    decode_value,
    encode_value,
)
from app_redis.interfaces import CacheExpirationTime

if TYPE_CHECKING:
    from app_redis.application import Request


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisCache:
    """Cache that stores encoded values in one Redis identity.

    Keeps no local state: every call goes to Redis. Values are encoded with
    the cache's encoder before writing and decoded with its decoder after
    reading. A missing key reads as None; a value that cannot be encoded or
    decoded raises a CacheSerializationError subclass.

    Args:
        encoder: Turns values into bytes for Redis
        decoder: Turns stored bytes back into values
        client: Client of the identity to store into

    Example:
        cache = RedisCache(JSONCacheEncoder(), JSONCacheDecoder(), app.redis())
        await cache.set("user:1", user, expires_in=60)
        user = await cache.get("user:1", as_type=User)
    """

    def __init__(
        self,
        encoder: Optional[CacheEncoder] = None,
        decoder: Optional[CacheDecoder] = None,
        client: Optional[RedisClient] = None,
    ):
        if client is None:
            raise ValueError("RedisCache requires a RedisClient")
        self.encoder = encoder or JSONCacheEncoder()
        self.decoder = decoder or JSONCacheDecoder()
        self.client = client

    def __repr__(self) -> str:
        return (
            f"RedisCache(id={str(self.client.id)!r}, "
            f"encoder={type(self.encoder).__name__}, decoder={type(self.decoder).__name__})"
        )

    async def get(self, key: str, as_type: Optional[Type[T]] = None) -> Optional[T]:
        """Get and decode a value.

        Args:
            key: Cache key
            as_type: Type to decode into; plain data when None

        Returns:
            Decoded value, or None when the key is absent or expired

        Raises:
            CacheDecodingError: Stored data does not decode into ``as_type``
        """
        data = await self.client.get(key)
        if data is None:
            return None
        return decode_value(self.decoder, as_type, data, cache_key=key)

    async def set(
        self,
        key: str,
        value: Any,
        expires_in: Optional[CacheExpirationTime] = None,
    ) -> None:
        """Encode and store a value; a None value deletes the key.

        Args:
            key: Cache key
            value: Value to store, or None to remove the key
            expires_in: Lifetime in seconds or as a timedelta, rounded up to
                whole seconds

        Raises:
            CacheEncodingError: The value cannot be encoded; Redis is not called
        """
        if value is None:
            await self.delete(key)
            return

        data = encode_value(self.encoder, value, cache_key=key)
        if expires_in is None:
            await self.client.set(key, data)
        else:
            await self.client.setex(key, data, expiration_seconds(expires_in))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    def for_request(self, request: "Request") -> "RedisCache":
        """Same cache, logging through the request and running on its loop."""
        return RedisCache(self.encoder, self.decoder, request.redis(self.client.id))
