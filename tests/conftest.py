"""Root pytest configuration."""
import os

import pytest

from app_redis import Application, RedisConfiguration
from app_redis.testing import InMemoryRedisNetwork


def pytest_configure(config):
    """Configure pytest to handle integration test markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires a Redis server)"
    )


def pytest_runtest_setup(item):
    """Skip integration tests if not enabled."""
    if item.get_closest_marker("integration"):
        if not os.getenv("RUN_INTEGRATION_TESTS"):
            pytest.skip(
                "Integration tests skipped. Set RUN_INTEGRATION_TESTS=1 to run."
            )


@pytest.fixture(autouse=True)
def isolated_redis_env(monkeypatch):
    """Keep REDIS_* variables of the host out of configuration tests."""
    for name in list(os.environ):
        if name.startswith("REDIS_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def network():
    """Fresh set of in-memory Redis servers."""
    return InMemoryRedisNetwork()


@pytest.fixture
def app(network):
    """Application whose default identity points at an in-memory server."""
    application = Application(redis_pool_factory=network.pool_factory)
    application.redis().configuration = RedisConfiguration(hostname="localhost", port=6379)
    return application


@pytest.fixture
def server(network):
    """In-memory server behind the default identity of ``app``."""
    return network.server("localhost", 6379, 0)

