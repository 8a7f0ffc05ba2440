"""Unit tests for RedisClient against the in-memory Redis."""
import asyncio
import logging
import threading
from datetime import timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from app_redis import RedisConfiguration, RedisID, RedisKeyLifetime
from app_redis.client import LifetimeKind, expiration_seconds
from app_redis.config import RedisPoolOptions
from app_redis.exceptions import CacheDecodingError, CacheEncodingError


# ==================== Basic commands ====================

@pytest.mark.asyncio
async def test_set_and_get(app):
    """Should store and read raw values."""
    redis = app.redis()

    await redis.set("name", "redis1")

    assert await redis.get("name") == b"redis1"
    assert await redis.get("missing") is None


@pytest.mark.asyncio
async def test_set_with_expiry_uses_setex(app, server):
    """Should send SETEX with whole seconds when an expiry is given."""
    await app.redis().set("session", "abc", expires_in=timedelta(milliseconds=1500))

    assert server.commands[-1] == ("SETEX", (b"session", b"2", b"abc"))


@pytest.mark.asyncio
async def test_delete_and_exists(app):
    """Should count deleted and existing keys."""
    redis = app.redis()
    await redis.set("a", 1)
    await redis.set("b", 2)

    assert await redis.exists("a", "b", "c") == 2
    assert await redis.delete(["a", "c"]) == 1
    assert await redis.exists("a") == 0
    assert await redis.delete() == 0


@pytest.mark.asyncio
async def test_expire_and_ttl(app, server):
    """Should report limited, unlimited and missing lifetimes."""
    redis = app.redis()
    await redis.set("key", "value")

    assert await redis.ttl("key") == RedisKeyLifetime.UNLIMITED
    assert await redis.ttl("missing") == RedisKeyLifetime.KEY_DOES_NOT_EXIST
    assert not (await redis.ttl("missing")).exists

    assert await redis.expire("key", 10) is True
    lifetime = await redis.ttl("key")
    assert lifetime.kind is LifetimeKind.LIMITED
    assert lifetime.timeout == timedelta(seconds=10)

    assert await redis.expire("missing", 10) is False


@pytest.mark.asyncio
async def test_expire_with_fraction_uses_pexpire(app, server):
    """Should fall back to PEXPIRE for sub-second precision."""
    redis = app.redis()
    await redis.set("key", "value")

    await redis.expire("key", timedelta(milliseconds=2500))

    assert server.commands[-1] == ("PEXPIRE", (b"key", b"2500"))
    lifetime = await redis.pttl("key")
    assert timedelta(milliseconds=2000) < lifetime.timeout <= timedelta(milliseconds=2500)


@pytest.mark.asyncio
async def test_keys_expire_with_server_time(app, server):
    """Should stop returning keys once their lifetime has passed."""
    redis = app.redis()
    await redis.set("key", "value", expires_in=1)

    server.advance_time(2)

    assert await redis.get("key") is None


@pytest.mark.asyncio
async def test_send_passes_raw_commands(app):
    """Should send arbitrary commands and return the raw reply."""
    redis = app.redis()

    assert await redis.send("SET", "raw", "value") is True
    assert await redis.send("GET", "raw") == b"value"

    with pytest.raises(ResponseError):
        await redis.send("NOSUCHCOMMAND")


@pytest.mark.asyncio
async def test_ping(app):
    """Should report a responsive server."""
    assert await app.redis().ping() is True


def test_expiration_seconds_rounds_up():
    """Should round expirations up to whole seconds, at least one."""
    assert expiration_seconds(1) == 1
    assert expiration_seconds(0.2) == 1
    assert expiration_seconds(timedelta(seconds=2, milliseconds=1)) == 3

    with pytest.raises(ValueError):
        expiration_seconds(0)


def test_lifetime_from_reply():
    """Should interpret TTL and PTTL replies."""
    assert RedisKeyLifetime.from_reply(-2) is RedisKeyLifetime.KEY_DOES_NOT_EXIST
    assert RedisKeyLifetime.from_reply(-1) is RedisKeyLifetime.UNLIMITED
    assert RedisKeyLifetime.from_reply(1500, "milliseconds").timeout == timedelta(seconds=1.5)


# ==================== Identities ====================

@pytest.mark.asyncio
async def test_identities_are_isolated(app, network):
    """Should keep the same key apart on two configured backends."""
    app.redis("one").configuration = RedisConfiguration(hostname="host-a", port=6379)
    app.redis("two").configuration = RedisConfiguration(hostname="host-b", port=6380)

    await app.redis("one").set("name", "redis1")
    await app.redis("two").set("name", "redis2")

    assert await app.redis("one").get("name") == b"redis1"
    assert await app.redis("two").get("name") == b"redis2"
    assert network.server("host-a", 6379).get_raw("name") == b"redis1"
    assert network.server("host-b", 6380).get_raw("name") == b"redis2"


@pytest.mark.asyncio
async def test_unconfigured_identity_fails_on_first_command(app):
    """Should raise when a command targets an unknown identity."""
    from app_redis.exceptions import RedisNotConfiguredError

    with pytest.raises(RedisNotConfiguredError):
        await app.redis(RedisID("nowhere")).get("key")


# ==================== JSON helpers ====================

@pytest.mark.asyncio
async def test_json_helpers(app):
    """Should store JSON and decode it into the requested type."""
    redis = app.redis()

    await redis.set_json("numbers", [1, 2, 3])
    await redis.setex_json("config", {"debug": True}, 30)

    assert await redis.get("numbers") == b"[1,2,3]"
    assert await redis.get_json("numbers", as_type=list) == [1, 2, 3]
    assert await redis.get_json("config") == {"debug": True}
    assert await redis.get_json("missing", as_type=dict) is None
    assert (await redis.ttl("config")).timeout == timedelta(seconds=30)


@pytest.mark.asyncio
async def test_json_decode_failure_is_not_none(app):
    """Should raise on undecodable data instead of reporting a miss."""
    redis = app.redis()
    await redis.set("count", "not json")

    with pytest.raises(CacheDecodingError):
        await redis.get_json("count", as_type=int)


@pytest.mark.asyncio
async def test_json_encode_failure_sends_nothing(app, server):
    """Should fail before any command is sent."""
    with pytest.raises(CacheEncodingError):
        await app.redis().set_json("bad", object())

    assert server.commands == []


# ==================== Logging ====================

@pytest.mark.asyncio
async def test_logging_returns_rebound_copy(app, caplog):
    """Should log commands to the given logger without changing the original."""
    original = app.redis()
    target = logging.getLogger("tests.redis.commands")

    copy = original.logging(to=target)

    with caplog.at_level(logging.DEBUG, logger="tests.redis.commands"):
        await copy.set("logged", "yes")

    assert copy.logger is target
    assert original.logger is app.logger
    assert any(
        record.name == "tests.redis.commands" and record.command == "SET"
        for record in caplog.records
    )


@pytest.mark.asyncio
async def test_request_clients_stamp_request_id(app, caplog):
    """Should tag command logs with the request id."""
    request = app.make_request(request_id="req-42")

    with caplog.at_level(logging.DEBUG, logger=app.logger.name):
        await request.redis().get("anything")

    assert any(getattr(record, "request_id", None) == "req-42" for record in caplog.records)


# ==================== Callback convention ====================

@pytest.mark.asyncio
async def test_futures_match_coroutines(app):
    """Should produce the same results and effects in both forms."""
    redis = app.redis()
    completed = []

    await redis.futures.set("fut", "value", on_complete=completed.append)
    result_future = redis.futures.get("fut")

    assert await result_future == await redis.get("fut") == b"value"
    assert completed and completed[0].exception() is None


@pytest.mark.asyncio
async def test_futures_report_errors_through_the_future(app):
    """Should deliver failures to the callback's future."""
    done = asyncio.Event()
    seen = []

    def on_complete(future):
        seen.append(future.exception())
        done.set()

    app.redis(RedisID("nowhere")).futures.get("key", on_complete=on_complete)
    await asyncio.wait_for(done.wait(), timeout=1)

    assert type(seen[0]).__name__ == "RedisNotConfiguredError"


def test_futures_from_another_thread(app, server):
    """Should schedule onto a loop running in another thread."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    try:
        redis = app.redis()
        redis.futures.set("threaded", "value", loop=loop).result(timeout=2)
        value = redis.futures.get("threaded", loop=loop).result(timeout=2)
    finally:
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=2)
        loop.close()

    assert value == b"value"
    assert server.get_raw("threaded") == b"value"


def test_futures_reject_non_operations(app):
    """Should only expose coroutine operations."""
    with pytest.raises(AttributeError):
        app.redis().futures.logging


# ==================== Borrowed connections ====================

@pytest.mark.asyncio
async def test_borrowed_connection_runs_transaction(app):
    """Should run MULTI/PING/EXEC on one connection."""
    async def transaction(connection):
        assert await connection.send("MULTI") == b"OK"
        assert await connection.send("PING") == b"QUEUED"
        return await connection.send("EXEC")

    assert await app.redis().with_borrowed_connection(transaction) == [b"PONG"]


@pytest.mark.asyncio
async def test_borrowed_connection_released_after_success_and_failure(network):
    """Should make the connection available again on every exit path."""
    from app_redis import Application

    app = Application(redis_pool_factory=network.pool_factory)
    app.redis().configuration = RedisConfiguration(
        pool=RedisPoolOptions(maximum_connection_count=1, connection_retry_timeout=0.2)
    )
    redis = app.redis()

    async def ok(connection):
        return await connection.ping()

    async def failing(connection):
        raise RuntimeError("operation failed")

    assert await redis.with_borrowed_connection(ok) is True
    with pytest.raises(RuntimeError):
        await redis.with_borrowed_connection(failing)
    assert await redis.with_borrowed_connection(ok) is True
    assert redis.pool.in_use == 0


@pytest.mark.asyncio
async def test_lease_times_out_when_pool_is_exhausted(network):
    """Should fail with ConnectionError after the retry timeout."""
    from app_redis import Application

    app = Application(redis_pool_factory=network.pool_factory)
    app.redis().configuration = RedisConfiguration(
        pool=RedisPoolOptions(maximum_connection_count=1, connection_retry_timeout=0.05)
    )
    redis = app.redis()
    holding = asyncio.Event()
    release = asyncio.Event()

    async def hold(connection):
        holding.set()
        await release.wait()

    holder = asyncio.create_task(redis.with_borrowed_connection(hold))
    await holding.wait()

    async def noop(connection):
        return None

    with pytest.raises(RedisConnectionError):
        await redis.with_borrowed_connection(noop)

    release.set()
    await holder
    assert redis.pool.in_use == 0
