"""Expansion of ${VAR} references in loaded configuration."""
import logging
import os
import re
from typing import Any, Mapping, Optional

from app_redis.exceptions.config import EnvVarNotFoundError, EnvVarSubstitutionError


logger = logging.getLogger(__name__)

# ${...} anywhere in a string; a preceding backslash keeps it literal
REFERENCE = re.compile(r"(?P<escape>\\)?\$\{(?P<body>[^}]*)\}")

# NAME, NAME:-default, NAME=default, NAME:?message
EXPRESSION = re.compile(r"^\s*(?P<name>[^:=?\s]*)\s*(?:(?P<op>:-|:\?|=)(?P<arg>.*))?$", re.DOTALL)

VAR_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class EnvSubstitutor:
    """Expands environment references in every string of a config tree.

    Supported forms:
    - ``${NAME}``: value of NAME, which must be set
    - ``${NAME:-default}`` or ``${NAME=default}``: default when NAME is unset
    - ``${NAME:?message}``: fail with ``message`` when NAME is unset
    - ``\\${NAME}``: the literal text ``${NAME}``

    Args:
        environ: Variables to read from; ``os.environ`` when None
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def substitute(self, config: Any) -> Any:
        """Copy of ``config`` with references expanded. Non-strings pass through."""
        if isinstance(config, str):
            return REFERENCE.sub(self._replace, config)
        if isinstance(config, dict):
            return {key: self.substitute(value) for key, value in config.items()}
        if isinstance(config, list):
            return [self.substitute(item) for item in config]
        return config

    def _replace(self, match: re.Match) -> str:
        if match.group("escape"):
            return match.group(0)[1:]
        return self.resolve(match.group("body"))

    def resolve(self, expression: str) -> str:
        """Value of one reference body, such as ``REDIS_HOST:-localhost``.

        Raises:
            EnvVarSubstitutionError: The body does not start with a valid name
            EnvVarNotFoundError: The variable is unset and has no default
        """
        parsed = EXPRESSION.match(expression)
        name = parsed.group("name") if parsed else ""
        if not VAR_NAME.match(name):
            raise EnvVarSubstitutionError(
                message=f"Invalid environment variable reference '${{{expression}}}'",
                var_name=name or None,
                expression=expression,
            )

        operator, argument = parsed.group("op"), parsed.group("arg")

        value = self.environ.get(name)
        if value is not None:
            return value

        if operator in (":-", "="):
            logger.debug("Env var unset, using default", extra={"var_name": name})
            return argument

        logger.error(f"Required env var missing: {name}", extra={"var_name": name})
        if operator == ":?" and argument:
            message = argument
        else:
            message = f"Environment variable '{name}' not found"
        raise EnvVarNotFoundError(
            message=message,
            var_name=name,
            suggestions=[
                f"Export {name} before starting the service",
                f"Or give it a default: ${{{name}:-value}}",
            ],
        )
