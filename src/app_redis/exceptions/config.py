"""Configuration-related exceptions."""
from typing import Any, Dict, Optional


def _present(**values: Any) -> Dict[str, Any]:
    """Only the values that were actually given."""
    return {name: value for name, value in values.items() if value is not None}


class ConfigError(Exception):
    """Base exception for configuration errors.

    Args:
        message: Human-readable error message (class default when None)
        config_file: File the configuration came from
        details: Additional error context
    """

    default_message = "Configuration error"

    def __init__(
        self,
        message: Optional[str] = None,
        config_file: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.message = message or self.default_message
        self.config_file = config_file
        self.details = dict(details or {})
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.config_file:
            location = self.config_file
            if "line" in self.details:
                location += f":{self.details['line']}"
            parts.append(f"Config: {location}")
        if "redis_id" in self.details:
            parts.append(f"Redis: {self.details['redis_id']}")
        return " | ".join(parts)


class ConfigParseError(ConfigError):
    """Configuration file is unreadable or not valid YAML."""

    default_message = "Failed to parse config file"

    def __init__(
        self,
        message: Optional[str] = None,
        config_file: Optional[str] = None,
        line_number: Optional[int] = None,
        column_number: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            config_file,
            _present(line=line_number, column=column_number),
        )
        self.original_error = original_error


class ConfigValidationError(ConfigError):
    """Configuration values are invalid."""

    default_message = "Configuration validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        config_file: Optional[str] = None,
        field_errors: Optional[dict] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, config_file, _present(field_errors=field_errors))
        self.original_error = original_error


class RedisConfigurationError(ConfigValidationError):
    """A Redis configuration is malformed or cannot be applied.

    ``url`` is expected to be masked already; it is shown as given.
    """

    default_message = "Invalid Redis configuration"

    def __init__(
        self,
        message: Optional[str] = None,
        redis_id: Optional[str] = None,
        url: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error=original_error)
        self.details.update(_present(redis_id=str(redis_id) if redis_id else None, url=url))
        self.redis_id = redis_id


class RedisConfigurationLockedError(RedisConfigurationError):
    """The identity already has a pool, so its configuration is fixed."""

    default_message = "Cannot modify Redis configuration after first use"

    def __init__(self, message: Optional[str] = None, redis_id: Optional[str] = None):
        super().__init__(message, redis_id=redis_id)


class RedisNotConfiguredError(ConfigError):
    """A Redis identity was used without a registered configuration."""

    def __init__(self, message: Optional[str] = None, redis_id: Optional[str] = None):
        super().__init__(
            message or f"No Redis configuration registered for '{redis_id}'",
            details=_present(redis_id=str(redis_id) if redis_id else None),
        )
        self.redis_id = redis_id


class EnvVarNotFoundError(ConfigError):
    """A referenced environment variable is unset and has no default."""

    default_message = "Environment variable not found"

    def __init__(
        self,
        message: Optional[str] = None,
        var_name: Optional[str] = None,
        suggestions: Optional[list] = None,
    ):
        super().__init__(message, details=_present(var_name=var_name, suggestions=suggestions))


class EnvVarSubstitutionError(ConfigError):
    """A ``${...}`` expression cannot be evaluated."""

    default_message = "Environment variable substitution failed"

    def __init__(
        self,
        message: Optional[str] = None,
        var_name: Optional[str] = None,
        expression: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details=_present(var_name=var_name, expression=expression))
        self.original_error = original_error
