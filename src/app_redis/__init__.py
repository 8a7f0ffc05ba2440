"""Redis client, pub/sub and cache integration for asyncio applications."""

from app_redis.identity import RedisID  # noqa: F401
from app_redis.config import (  # noqa: F401
    RedisConfiguration,
    RedisPoolOptions,
    load_redis_configurations,
)
from app_redis.coders import (  # noqa: F401
    CacheDecoder,
    CacheEncoder,
    JSONCacheDecoder,
    JSONCacheEncoder,
    PropertyListCacheDecoder,
    PropertyListCacheEncoder,
    get_coders,
)
from app_redis.client import LifetimeKind, RedisClient, RedisKeyLifetime  # noqa: F401
from app_redis.pool import RedisConnectionPool  # noqa: F401
from app_redis.storage import RedisStorage  # noqa: F401
from app_redis.pubsub import PubSubManager, RedisSubscriptionClient  # noqa: F401
from app_redis.cache import RedisCache  # noqa: F401
from app_redis.caches import CacheProviders, Caches, MemoryCache  # noqa: F401
from app_redis.application import Application, Request  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    # Identity & configuration
    "RedisID",
    "RedisConfiguration",
    "RedisPoolOptions",
    "load_redis_configurations",
    # Coders
    "CacheEncoder",
    "CacheDecoder",
    "JSONCacheEncoder",
    "JSONCacheDecoder",
    "PropertyListCacheEncoder",
    "PropertyListCacheDecoder",
    "get_coders",
    # Redis
    "RedisClient",
    "RedisKeyLifetime",
    "LifetimeKind",
    "RedisConnectionPool",
    "RedisStorage",
    "PubSubManager",
    "RedisSubscriptionClient",
    # Caches
    "RedisCache",
    "Caches",
    "CacheProviders",
    "MemoryCache",
    # Host
    "Application",
    "Request",
]
