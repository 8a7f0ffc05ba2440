"""Testing utilities: an in-memory Redis usable in place of a server."""
from app_redis.testing.mocks import (
    InMemoryConnectionPool,
    InMemoryPubSub,
    InMemoryRedis,
    InMemoryRedisNetwork,
    InMemoryRedisServer,
)

__all__ = [
    "InMemoryRedisNetwork",
    "InMemoryRedisServer",
    "InMemoryRedis",
    "InMemoryPubSub",
    "InMemoryConnectionPool",
]
