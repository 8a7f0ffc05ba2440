"""Redis client facade bound to an application and an identity."""
import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    TypeVar,
    Union,
)

from app_redis.codable import JSONCommandsMixin
from app_redis.concurrency import CompletionClient
from app_redis.config.settings import RedisConfiguration
from app_redis.exceptions.config import RedisConfigurationError
from app_redis.identity import RedisID
from app_redis.interfaces import IRedisPool
from app_redis.pubsub import ChannelHandler, ChangeHandler, Channels

if TYPE_CHECKING:
    from app_redis.application import Application

R = TypeVar("R")

Key = Union[str, bytes]
Duration = Union[int, float, timedelta]
LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


class LifetimeKind(str, Enum):
    """How long a key will live."""

    KEY_DOES_NOT_EXIST = "key_does_not_exist"
    UNLIMITED = "unlimited"
    LIMITED = "limited"


@dataclass(frozen=True)
class RedisKeyLifetime:
    """Remaining time-to-live of a key, as reported by TTL/PTTL."""

    kind: LifetimeKind
    timeout: Optional[timedelta] = None

    @classmethod
    def from_reply(cls, value: int, unit: str = "seconds") -> "RedisKeyLifetime":
        """Interpret a TTL (``unit="seconds"``) or PTTL (``"milliseconds"``) reply."""
        value = int(value)
        if value == -2:
            return KEY_DOES_NOT_EXIST
        if value == -1:
            return UNLIMITED
        return cls(LifetimeKind.LIMITED, timedelta(**{unit: value}))

    @property
    def exists(self) -> bool:
        return self.kind is not LifetimeKind.KEY_DOES_NOT_EXIST


KEY_DOES_NOT_EXIST = RedisKeyLifetime(LifetimeKind.KEY_DOES_NOT_EXIST)
UNLIMITED = RedisKeyLifetime(LifetimeKind.UNLIMITED)
RedisKeyLifetime.KEY_DOES_NOT_EXIST = KEY_DOES_NOT_EXIST
RedisKeyLifetime.UNLIMITED = UNLIMITED


def expiration_seconds(expires_in: Duration) -> int:
    """Whole seconds for SETEX/EXPIRE, rounded up, at least one."""
    if isinstance(expires_in, timedelta):
        seconds = expires_in.total_seconds()
    else:
        seconds = float(expires_in)
    if seconds <= 0:
        raise ValueError(f"Expiration must be positive, got {expires_in!r}")
    return max(1, math.ceil(seconds))


def _flatten_keys(keys: Iterable[Any]) -> List[Key]:
    flat: List[Key] = []
    for key in keys:
        if isinstance(key, (list, tuple, set)):
            flat.extend(key)
        else:
            flat.append(key)
    return flat


class RedisClient(JSONCommandsMixin):
    """Redis commands for one identity of an application.

    Each command borrows a connection from the identity's pool for the
    running event loop, so the same client can be shared between tasks.
    Every operation is a coroutine; ``client.futures`` exposes the same
    operations in completion-callback form.

    Obtain instances from ``app.redis(redis_id)`` or ``request.redis(redis_id)``.

    Example:
        redis = app.redis()
        await redis.set("greeting", "hello")
        assert await redis.get("greeting") == b"hello"

        # Same operation, callback style
        redis.futures.get("greeting", on_complete=handle)
    """

    def __init__(
        self,
        application: "Application",
        redis_id: RedisID = RedisID.DEFAULT,
        logger: Optional[LoggerLike] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        connection: Any = None,
    ):
        self.application = application
        self.id = RedisID(redis_id)
        self.logger = logger if logger is not None else application.logger
        self._loop = loop
        self._connection = connection

    def __repr__(self) -> str:
        leased = ", leased" if self._connection is not None else ""
        return f"RedisClient(id={str(self.id)!r}{leased})"

    # ==================== Configuration ====================

    @property
    def configuration(self) -> Optional[RedisConfiguration]:
        """Configuration registered for this identity, or None."""
        return self.application.redis_storage.configuration(self.id)

    @configuration.setter
    def configuration(self, value: RedisConfiguration) -> None:
        if value is None:
            raise RedisConfigurationError(
                "Modifying configuration is not supported",
                redis_id=self.id,
            )
        self.application.redis_storage.use(value, as_id=self.id)

    # ==================== Pool access ====================

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """Event loop the client's commands run on."""
        return self._loop or asyncio.get_running_loop()

    @property
    def pool(self) -> IRedisPool:
        """Pool of this identity for the client's event loop."""
        return self.application.redis_storage.pool(self.loop, self.id)

    def _redis(self) -> Any:
        if self._connection is not None:
            return self._connection
        return self.pool.client

    def logging(self, to: LoggerLike) -> "RedisClient":
        """Copy of this client that logs to another logger."""
        return RedisClient(
            self.application,
            self.id,
            logger=to,
            loop=self._loop,
            connection=self._connection,
        )

    @property
    def futures(self) -> CompletionClient:
        """Completion-callback form of every operation."""
        return CompletionClient(self)

    def _log_command(self, command: str, *keys: Any) -> None:
        self.logger.debug(
            f"Redis {command}",
            extra={"redis_id": str(self.id), "command": command, "keys": [str(k) for k in keys]},
        )

    # ==================== Commands ====================

    async def send(self, command: str, *args: Any) -> Any:
        """Send an arbitrary command and return the raw reply."""
        self._log_command(command)
        return await self._redis().execute_command(command, *args)

    async def ping(self) -> bool:
        """Check the server answers PING."""
        self._log_command("PING")
        return bool(await self._redis().ping())

    async def get(self, key: Key) -> Optional[bytes]:
        """Value stored at ``key``, or None when absent."""
        self._log_command("GET", key)
        return await self._redis().get(key)

    async def set(self, key: Key, value: Any, expires_in: Optional[Duration] = None) -> None:
        """Store ``value`` at ``key``; with ``expires_in`` the key expires."""
        if expires_in is not None:
            await self.setex(key, value, expiration_seconds(expires_in))
            return
        self._log_command("SET", key)
        await self._redis().set(key, value)

    async def setex(self, key: Key, value: Any, seconds: int) -> None:
        """Store ``value`` at ``key`` for ``seconds`` seconds."""
        self._log_command("SETEX", key)
        await self._redis().setex(key, seconds, value)

    async def delete(self, *keys: Union[Key, Iterable[Key]]) -> int:
        """Delete keys; returns how many existed."""
        flat = _flatten_keys(keys)
        if not flat:
            return 0
        self._log_command("DEL", *flat)
        return int(await self._redis().delete(*flat))

    async def exists(self, *keys: Union[Key, Iterable[Key]]) -> int:
        """Number of the given keys that exist."""
        flat = _flatten_keys(keys)
        if not flat:
            return 0
        self._log_command("EXISTS", *flat)
        return int(await self._redis().exists(*flat))

    async def expire(self, key: Key, after: Duration) -> bool:
        """Set a timeout on ``key``; False when the key does not exist."""
        if isinstance(after, timedelta):
            milliseconds = int(after.total_seconds() * 1000)
        else:
            milliseconds = int(float(after) * 1000)

        if milliseconds % 1000 == 0:
            self._log_command("EXPIRE", key)
            return bool(await self._redis().expire(key, milliseconds // 1000))

        self._log_command("PEXPIRE", key)
        return bool(await self._redis().pexpire(key, milliseconds))

    async def ttl(self, key: Key) -> RedisKeyLifetime:
        """Remaining lifetime of ``key`` in seconds."""
        self._log_command("TTL", key)
        return RedisKeyLifetime.from_reply(await self._redis().ttl(key), "seconds")

    async def pttl(self, key: Key) -> RedisKeyLifetime:
        """Remaining lifetime of ``key`` in milliseconds."""
        self._log_command("PTTL", key)
        return RedisKeyLifetime.from_reply(await self._redis().pttl(key), "milliseconds")

    async def publish(self, channel: str, message: Any) -> int:
        """Publish a message; returns the number of receivers."""
        self._log_command("PUBLISH", channel)
        return int(await self._redis().publish(channel, message))

    # ==================== Connection leasing ====================

    async def with_borrowed_connection(
        self,
        operation: Callable[["RedisClient"], Awaitable[R]],
    ) -> R:
        """Run ``operation`` with exclusive use of one connection.

        The client passed to ``operation`` sends every command over the same
        connection, in order. The connection returns to the pool when the
        operation finishes, raises or is cancelled.

        Example:
            async def transaction(conn):
                await conn.send("MULTI")
                await conn.send("PING")
                return await conn.send("EXEC")

            replies = await app.redis().with_borrowed_connection(transaction)
        """
        async with self.pool.lease() as connection:
            leased = RedisClient(
                self.application,
                self.id,
                logger=self.logger,
                loop=self._loop,
                connection=connection,
            )
            return await operation(leased)

    # ==================== Pub/Sub ====================

    async def subscribe(
        self,
        channels: Channels,
        receiver: ChannelHandler,
        on_subscribe: Optional[ChangeHandler] = None,
        on_unsubscribe: Optional[ChangeHandler] = None,
    ) -> None:
        """Subscribe to channels on the identity's pub/sub connection.

        The identity has a single subscription client, created on the event
        loop of its first subscriber and bound to that loop for good. Clients
        on other loops reuse it, so subscribe only from that first loop.
        """
        self.logger.debug("Redis SUBSCRIBE", extra={"redis_id": str(self.id), "channels": channels})
        await self.application.pubsub.client(self.id).subscribe(
            channels, receiver, on_subscribe=on_subscribe, on_unsubscribe=on_unsubscribe
        )

    async def unsubscribe(self, channels: Optional[Channels] = None) -> None:
        """Unsubscribe from channels (all channels when None)."""
        self.logger.debug("Redis UNSUBSCRIBE", extra={"redis_id": str(self.id), "channels": channels})
        await self.application.pubsub.client(self.id).unsubscribe(channels)

    async def psubscribe(
        self,
        patterns: Channels,
        receiver: ChannelHandler,
        on_subscribe: Optional[ChangeHandler] = None,
        on_unsubscribe: Optional[ChangeHandler] = None,
    ) -> None:
        """Subscribe to channel patterns on the identity's pub/sub connection."""
        self.logger.debug("Redis PSUBSCRIBE", extra={"redis_id": str(self.id), "patterns": patterns})
        await self.application.pubsub.client(self.id).psubscribe(
            patterns, receiver, on_subscribe=on_subscribe, on_unsubscribe=on_unsubscribe
        )

    async def punsubscribe(self, patterns: Optional[Channels] = None) -> None:
        """Unsubscribe from patterns (all patterns when None)."""
        self.logger.debug("Redis PUNSUBSCRIBE", extra={"redis_id": str(self.id), "patterns": patterns})
        await self.application.pubsub.client(self.id).punsubscribe(patterns)
