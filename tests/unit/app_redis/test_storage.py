"""Unit tests for the Redis configuration and pool registry."""
import asyncio
import threading

import pytest

from app_redis import Application, RedisConfiguration, RedisID, RedisStorage
from app_redis.application import Locks
from app_redis.exceptions import (
    RedisConfigurationError,
    RedisConfigurationLockedError,
    RedisNotConfiguredError,
)
from app_redis.testing import InMemoryRedisNetwork


def make_storage(network):
    return RedisStorage(Locks(), pool_factory=network.pool_factory)


def test_use_registers_configuration(network):
    """Should store the configuration under its identity."""
    storage = make_storage(network)
    config = RedisConfiguration(port=6380)

    storage.use(config, as_id=RedisID("one"))

    assert storage.configuration("one") is config
    assert storage.configuration(RedisID("two")) is None
    assert storage.ids() == [RedisID("one")]


def test_configuration_can_change_before_first_use(network):
    """Should accept a new configuration until a pool exists."""
    storage = make_storage(network)

    storage.use(RedisConfiguration(port=6380))
    storage.use(RedisConfiguration(port=6381))

    assert storage.configuration().port == 6381
    assert not storage.is_locked(RedisID.DEFAULT)


@pytest.mark.asyncio
async def test_first_pool_locks_configuration(network):
    """Should refuse configuration changes once a pool was created."""
    storage = make_storage(network)
    storage.use(RedisConfiguration(port=6380))

    storage.pool(asyncio.get_running_loop())

    assert storage.is_locked(RedisID.DEFAULT)
    with pytest.raises(RedisConfigurationLockedError, match="after first use"):
        storage.use(RedisConfiguration(port=6381))

    # Other identities stay configurable
    storage.use(RedisConfiguration(port=6382), as_id=RedisID("other"))
    assert storage.configuration("other").port == 6382


@pytest.mark.asyncio
async def test_pool_requires_configuration(network):
    """Should raise RedisNotConfiguredError for unknown identities."""
    storage = make_storage(network)

    with pytest.raises(RedisNotConfiguredError) as exc_info:
        storage.pool(asyncio.get_running_loop(), RedisID("missing"))

    assert exc_info.value.redis_id == "missing"
    assert network.pools == []


@pytest.mark.asyncio
async def test_pool_is_reused_per_identity_and_loop(network):
    """Should return the same pool for the same identity and loop."""
    storage = make_storage(network)
    storage.use(RedisConfiguration(port=6380), as_id=RedisID("one"))
    storage.use(RedisConfiguration(port=6381), as_id=RedisID("two"))
    loop = asyncio.get_running_loop()

    first = storage.pool(loop, RedisID("one"))

    assert storage.pool(loop, "one") is first
    assert storage.pool(loop, "two") is not first
    assert len(network.pools) == 2
    assert storage.pools(RedisID("one")) == [first]


def test_concurrent_first_access_creates_one_pool():
    """Should create exactly one pool when many threads race for it."""
    network = InMemoryRedisNetwork()
    created = []
    gate = threading.Barrier(16)

    def slow_factory(redis_id, configuration, loop):
        pool = network.pool_factory(redis_id, configuration, loop)
        created.append(pool)
        return pool

    storage = RedisStorage(Locks(), pool_factory=slow_factory)
    storage.use(RedisConfiguration())
    loop = asyncio.new_event_loop()
    results = []

    def worker():
        gate.wait()
        results.append(storage.pool(loop))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    loop.close()

    assert len(created) == 1
    assert len(results) == 16
    assert all(result is created[0] for result in results)


def test_each_loop_gets_its_own_pool():
    """Should keep pools apart for different event loops."""
    network = InMemoryRedisNetwork()
    storage = make_storage(network)
    storage.use(RedisConfiguration())
    loops = [asyncio.new_event_loop(), asyncio.new_event_loop()]

    pools = [storage.pool(loop) for loop in loops]
    for loop in loops:
        loop.close()

    assert pools[0] is not pools[1]
    assert len(storage.pools()) == 2


@pytest.mark.asyncio
async def test_aclose_closes_every_pool(network):
    """Should close and forget every pool."""
    storage = make_storage(network)
    storage.use(RedisConfiguration())
    pool = storage.pool(asyncio.get_running_loop())

    await storage.aclose()

    assert pool.closed
    assert storage.pools() == []


@pytest.mark.asyncio
async def test_client_configuration_property(app):
    """Should expose and guard the configuration through the client."""
    client = app.redis(RedisID("fresh"))
    assert client.configuration is None

    client.configuration = RedisConfiguration(port=6390)
    assert client.configuration.port == 6390

    with pytest.raises(RedisConfigurationError, match="Modifying configuration is not supported"):
        client.configuration = None


@pytest.mark.asyncio
async def test_client_configuration_locked_after_first_command(app):
    """Should refuse configuration changes after the first command."""
    await app.redis().ping()

    with pytest.raises(RedisConfigurationLockedError):
        app.redis().configuration = RedisConfiguration(port=7000)


@pytest.mark.asyncio
async def test_configure_redis_registers_mapping(network):
    """Should register every identity of a mapping."""
    app = Application(redis_pool_factory=network.pool_factory)

    app.configure_redis({
        "one": RedisConfiguration(port=6380),
        RedisID("two"): RedisConfiguration(port=6381),
    })

    assert app.redis("one").configuration.port == 6380
    assert app.redis("two").configuration.port == 6381


@pytest.mark.asyncio
async def test_configure_redis_from_yaml(tmp_path, network):
    """Should register identities read from a YAML file."""
    path = tmp_path / "redis.yaml"
    path.write_text("redis:\n  cache: redis://cache.internal:6390/1\n")
    app = Application(redis_pool_factory=network.pool_factory)

    app.configure_redis(path)

    assert app.redis("cache").configuration.hostname == "cache.internal"
