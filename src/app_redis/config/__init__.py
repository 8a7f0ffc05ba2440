"""Redis configuration and configuration loading."""

from app_redis.config.settings import RedisConfiguration, RedisPoolOptions  # noqa: F401
from app_redis.config.yaml_loader import YAMLLoader  # noqa: F401
from app_redis.config.substitutor import EnvSubstitutor  # noqa: F401
from app_redis.config.loader import (  # noqa: F401
    configurations_from_mapping,
    load_redis_configurations,
)

__all__ = [
    # Settings
    "RedisConfiguration",
    "RedisPoolOptions",
    # YAML loading
    "YAMLLoader",
    # Environment variable substitution
    "EnvSubstitutor",
    # Named configurations
    "load_redis_configurations",
    "configurations_from_mapping",
]
