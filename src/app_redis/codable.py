"""JSON convenience commands for Redis clients."""
from typing import Any, Optional, Type, TypeVar

from app_redis.coders import (
    CacheDecoder,
    CacheEncoder,
    JSONCacheDecoder,
    JSONCacheEncoder,
    decode_value,
    encode_value,
)

T = TypeVar("T")

_default_encoder = JSONCacheEncoder()
_default_decoder = JSONCacheDecoder()


class JSONCommandsMixin:
    """Adds ``get_json``/``set_json``/``setex_json`` on top of get/set/setex.

    The host class provides ``get``, ``set`` and ``setex`` coroutines.
    """

    async def get_json(
        self,
        key: str,
        as_type: Optional[Type[T]] = None,
        decoder: Optional[CacheDecoder] = None,
    ) -> Optional[T]:
        """Get a key and decode it as JSON.

        Returns:
            Decoded value, or None if the key does not exist

        Raises:
            CacheDecodingError: The stored value is not valid for ``as_type``
        """
        data = await self.get(key)
        if data is None:
            return None
        return decode_value(decoder or _default_decoder, as_type, data, cache_key=key)

    async def set_json(
        self,
        key: str,
        value: Any,
        encoder: Optional[CacheEncoder] = None,
    ) -> None:
        """Encode a value as JSON and store it without expiry.

        Raises:
            CacheEncodingError: The value cannot be encoded; nothing is sent
        """
        data = encode_value(encoder or _default_encoder, value, cache_key=key)
        await self.set(key, data)

    async def setex_json(
        self,
        key: str,
        value: Any,
        seconds: int,
        encoder: Optional[CacheEncoder] = None,
    ) -> None:
        """Encode a value as JSON and store it with an expiry in seconds.

        Raises:
            CacheEncodingError: The value cannot be encoded; nothing is sent
        """
        data = encode_value(encoder or _default_encoder, value, cache_key=key)
        await self.setex(key, data, seconds)
