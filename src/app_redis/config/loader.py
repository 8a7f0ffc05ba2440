"""Load named Redis configurations from YAML."""
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from app_redis.config.settings import RedisConfiguration, RedisPoolOptions
from app_redis.config.substitutor import EnvSubstitutor
from app_redis.config.yaml_loader import YAMLLoader
from app_redis.exceptions.config import RedisConfigurationError
from app_redis.identity import RedisID


logger = logging.getLogger(__name__)

ROOT_KEY = "redis"


def load_redis_configurations(
    path: Union[str, Path],
    substitutor: Optional[EnvSubstitutor] = None,
) -> Dict[RedisID, RedisConfiguration]:
    """Read every Redis identity declared in a YAML file.

    The file holds a ``redis`` mapping from identity name to either a
    ``url`` (plus optional ``pool``) or the individual fields::

        redis:
          default:
            url: ${REDIS_URL:-redis://localhost:6379/0}
          sessions:
            hostname: ${SESSIONS_HOST}
            port: 6380
            pool:
              maximum_connection_count: 8

    Environment references are expanded before validation.

    Args:
        path: YAML file path
        substitutor: Environment substitutor (default EnvSubstitutor)

    Returns:
        Mapping of identity to configuration

    Raises:
        ConfigParseError: File missing or not valid YAML
        EnvVarNotFoundError: A referenced variable has no value and no default
        RedisConfigurationError: An entry is not a valid configuration
    """
    raw = YAMLLoader().load(path)
    raw = (substitutor or EnvSubstitutor()).substitute(raw)

    try:
        configurations = configurations_from_mapping(raw.get(ROOT_KEY) or {})
    except RedisConfigurationError as e:
        e.config_file = str(path)
        raise

    logger.info(
        "Loaded Redis configurations",
        extra={"path": str(path), "redis_ids": sorted(configurations)},
    )
    return configurations


def configurations_from_mapping(
    entries: Mapping[str, Any],
) -> Dict[RedisID, RedisConfiguration]:
    """Validate a mapping of identity name to configuration entry."""
    if not isinstance(entries, Mapping):
        raise RedisConfigurationError(
            f"'{ROOT_KEY}' must be a mapping of identity to configuration"
        )

    configurations: Dict[RedisID, RedisConfiguration] = {}
    for name, entry in entries.items():
        redis_id = RedisID(str(name))
        configurations[redis_id] = _configuration_from_entry(redis_id, entry)
    return configurations


def _configuration_from_entry(redis_id: RedisID, entry: Any) -> RedisConfiguration:
    if isinstance(entry, str):
        entry = {"url": entry}
    if not isinstance(entry, Mapping):
        raise RedisConfigurationError(
            "Configuration entry must be a URL or a mapping",
            redis_id=redis_id,
        )

    entry = dict(entry)
    url = entry.pop("url", None)
    try:
        if url is not None:
            pool = RedisPoolOptions.model_validate(entry.pop("pool", None) or {})
            if entry:
                raise RedisConfigurationError(
                    f"Unexpected keys next to 'url': {sorted(entry)}",
                    redis_id=redis_id,
                )
            return RedisConfiguration.from_url(url, pool=pool)

        # model_validate skips the REDIS_* environment lookup of __init__
        return RedisConfiguration.model_validate(entry)

    except ValidationError as e:
        raise RedisConfigurationError(
            f"Invalid configuration for '{redis_id}': {e.errors()[0]['msg']}",
            redis_id=redis_id,
            original_error=e,
        ) from e
    except RedisConfigurationError as e:
        if e.redis_id is None:
            e.redis_id = redis_id
            e.details["redis_id"] = str(redis_id)
        raise
