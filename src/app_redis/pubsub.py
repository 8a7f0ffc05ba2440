"""Pub/Sub subscriptions on a dedicated connection per Redis identity."""
import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Union

from app_redis.identity import RedisID

if TYPE_CHECKING:
    from app_redis.application import Application
    from app_redis.interfaces import IRedisPool


logger = logging.getLogger(__name__)

Channels = Union[str, Sequence[str]]
ChannelHandler = Callable[[str, Any], Union[None, Awaitable[None]]]
ChangeHandler = Callable[[str, int], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class _Handlers:
    receiver: ChannelHandler
    on_subscribe: Optional[ChangeHandler] = None
    on_unsubscribe: Optional[ChangeHandler] = None


def _names(channels: Optional[Channels]) -> List[str]:
    if channels is None:
        return []
    if isinstance(channels, (str, bytes)):
        channels = [channels]
    return [_text(c) for c in channels]


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


async def _call(handler: Optional[Callable[..., Any]], *args: Any) -> None:
    if handler is None:
        return
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


class RedisSubscriptionClient:
    """Subscription state of one identity, pinned to one connection.

    Subscribing puts a connection in a mode where it only accepts
    subscription commands, so this client never shares its connection with
    regular traffic. A background task reads the connection and dispatches
    messages to the registered receivers; it starts with the first
    subscription and ends once nothing is subscribed.

    Unsubscribing does not cancel messages already received.

    Args:
        redis_id: Identity served
        pool: Pool the dedicated connection is taken from
    """

    def __init__(self, redis_id: RedisID, pool: "IRedisPool"):
        self.redis_id = redis_id
        self._pubsub = pool.pubsub()
        self._channels: Dict[str, _Handlers] = {}
        self._patterns: Dict[str, _Handlers] = {}
        # Names whose unsubscribe ack has not arrived; a new subscribe clears them
        self._pending_unsubscribe: Set[str] = set()
        self._pending_punsubscribe: Set[str] = set()
        self._listener: Optional[asyncio.Task] = None

    @property
    def channels(self) -> List[str]:
        """Channels with a registered receiver."""
        return list(self._channels)

    @property
    def patterns(self) -> List[str]:
        """Patterns with a registered receiver."""
        return list(self._patterns)

    async def subscribe(
        self,
        channels: Channels,
        receiver: ChannelHandler,
        on_subscribe: Optional[ChangeHandler] = None,
        on_unsubscribe: Optional[ChangeHandler] = None,
    ) -> None:
        """Subscribe to channels.

        Args:
            channels: Channel name or names
            receiver: Called as ``receiver(channel, data)`` per message
            on_subscribe: Called as ``on_subscribe(channel, count)`` on ack
            on_unsubscribe: Called as ``on_unsubscribe(channel, count)`` on ack
        """
        names = _names(channels)
        if not names:
            raise ValueError("At least one channel is required")

        handlers = _Handlers(receiver, on_subscribe, on_unsubscribe)
        for name in names:
            self._channels[name] = handlers
        self._pending_unsubscribe.difference_update(names)

        await self._pubsub.subscribe(*names)
        self._ensure_listener()
        logger.info(
            "Subscribed to Redis channels",
            extra={"redis_id": str(self.redis_id), "channels": names},
        )

    async def unsubscribe(self, channels: Optional[Channels] = None) -> None:
        """Unsubscribe from channels, or from every channel when None."""
        names = _names(channels)
        self._pending_unsubscribe.update(names or self._channels)
        await self._pubsub.unsubscribe(*names)
        logger.info(
            "Unsubscribed from Redis channels",
            extra={"redis_id": str(self.redis_id), "channels": names or "*"},
        )

    async def psubscribe(
        self,
        patterns: Channels,
        receiver: ChannelHandler,
        on_subscribe: Optional[ChangeHandler] = None,
        on_unsubscribe: Optional[ChangeHandler] = None,
    ) -> None:
        """Subscribe to glob-style channel patterns.

        ``receiver`` gets the concrete channel name of each message.
        """
        names = _names(patterns)
        if not names:
            raise ValueError("At least one pattern is required")

        handlers = _Handlers(receiver, on_subscribe, on_unsubscribe)
        for name in names:
            self._patterns[name] = handlers
        self._pending_punsubscribe.difference_update(names)

        await self._pubsub.psubscribe(*names)
        self._ensure_listener()
        logger.info(
            "Subscribed to Redis patterns",
            extra={"redis_id": str(self.redis_id), "patterns": names},
        )

    async def punsubscribe(self, patterns: Optional[Channels] = None) -> None:
        """Unsubscribe from patterns, or from every pattern when None."""
        names = _names(patterns)
        self._pending_punsubscribe.update(names or self._patterns)
        await self._pubsub.punsubscribe(*names)
        logger.info(
            "Unsubscribed from Redis patterns",
            extra={"redis_id": str(self.redis_id), "patterns": names or "*"},
        )

    async def aclose(self) -> None:
        """Stop the listener and release the dedicated connection."""
        if self._listener is not None and not self._listener.done():
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
        self._listener = None
        self._channels.clear()
        self._patterns.clear()
        self._pending_unsubscribe.clear()
        self._pending_punsubscribe.clear()
        await self._pubsub.aclose()

    def _ensure_listener(self) -> None:
        if self._listener is None or self._listener.done():
            self._listener = asyncio.create_task(
                self._listen(), name=f"redis-pubsub-{self.redis_id}"
            )

    async def _listen(self) -> None:
        try:
            async for message in self._pubsub.listen():
                await self._dispatch(message)
        except Exception as e:
            # The next subscribe starts a new listener
            logger.exception(
                f"Redis subscription listener stopped: {e}",
                extra={
                    "redis_id": str(self.redis_id),
                    "channels": self.channels,
                    "patterns": self.patterns,
                },
            )

    async def _dispatch(self, message: Dict[str, Any]) -> None:
        kind = _text(message.get("type"))
        channel = _text(message.get("channel"))
        pattern = message.get("pattern")

        try:
            if kind == "message":
                handlers = self._channels.get(channel)
                if handlers is not None:
                    await _call(handlers.receiver, channel, message.get("data"))
            elif kind == "pmessage":
                handlers = self._patterns.get(_text(pattern))
                if handlers is not None:
                    await _call(handlers.receiver, channel, message.get("data"))
            elif kind in ("subscribe", "psubscribe"):
                registry = self._channels if kind == "subscribe" else self._patterns
                handlers = registry.get(channel)
                if handlers is not None:
                    await _call(handlers.on_subscribe, channel, int(message.get("data") or 0))
            elif kind in ("unsubscribe", "punsubscribe"):
                if kind == "unsubscribe":
                    registry, pending = self._channels, self._pending_unsubscribe
                else:
                    registry, pending = self._patterns, self._pending_punsubscribe
                if channel not in pending:
                    # Subscribed again before this ack arrived
                    return
                pending.discard(channel)
                handlers = registry.pop(channel, None)
                if handlers is not None:
                    await _call(handlers.on_unsubscribe, channel, int(message.get("data") or 0))
        except Exception:
            # One failing receiver must not stop delivery to the others
            logger.exception(
                "Redis subscription handler failed",
                extra={"redis_id": str(self.redis_id), "channel": channel, "message_type": kind},
            )


class RedisPubSubKey:
    """Storage and lock key of the per-identity subscription clients."""


class PubSubManager:
    """Creates and owns one RedisSubscriptionClient per identity.

    The subscription client takes its connection from the identity's pool
    for the event loop that first asks for it, and stays bound to that loop.
    """

    def __init__(self, application: "Application"):
        self.application = application

    def client(self, redis_id: RedisID = RedisID.DEFAULT) -> RedisSubscriptionClient:
        """Subscription client for an identity, created on first use."""
        redis_id = RedisID(redis_id)
        storage = self.application.storage

        existing = (storage.get(RedisPubSubKey) or {}).get(redis_id)
        if existing is not None:
            return existing

        with self.application.locks.lock(RedisPubSubKey):
            registry = storage.get(RedisPubSubKey) or {}
            existing = registry.get(redis_id)
            if existing is not None:
                return existing

            pool = self.application.redis_storage.pool(asyncio.get_running_loop(), redis_id)
            client = RedisSubscriptionClient(redis_id, pool)
            # Copy on write; readers do not take the lock
            storage.set(RedisPubSubKey, {**registry, redis_id: client})

        logger.info("Redis pub/sub client created", extra={"redis_id": str(redis_id)})
        return client

    async def aclose(self) -> None:
        """Close every subscription client."""
        with self.application.locks.lock(RedisPubSubKey):
            registry = self.application.storage.get(RedisPubSubKey) or {}
            self.application.storage.set(RedisPubSubKey, {})

        errors = []
        for redis_id, client in registry.items():
            try:
                await client.aclose()
            except Exception as e:
                logger.error(
                    f"Error closing Redis pub/sub client: {e}",
                    extra={"redis_id": str(redis_id)},
                    exc_info=True,
                )
                errors.append(e)

        if errors:
            raise errors[0]
