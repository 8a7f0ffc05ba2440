"""Custom exceptions for the Redis integration."""

from app_redis.exceptions.config import (
    ConfigError,
    ConfigParseError,
    ConfigValidationError,
    RedisConfigurationError,
    RedisConfigurationLockedError,
    RedisNotConfiguredError,
    EnvVarNotFoundError,
    EnvVarSubstitutionError,
)

from app_redis.exceptions.cache import (
    CacheError,
    CacheSerializationError,
    CacheEncodingError,
    CacheDecodingError,
)

__all__ = [
    # Configuration exceptions
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    "RedisConfigurationError",
    "RedisConfigurationLockedError",
    "RedisNotConfiguredError",
    "EnvVarNotFoundError",
    "EnvVarSubstitutionError",
    # Cache exceptions
    "CacheError",
    "CacheSerializationError",
    "CacheEncodingError",
    "CacheDecodingError",
]
