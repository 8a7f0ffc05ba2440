"""Root logging setup for services using the Redis integration."""
import logging
import logging.handlers
import sys
from typing import Any, List, Optional, Union

from app_redis.logging.context import (
    ContextFilter,
    ContextLoggerAdapter,
    get_service_name,
    set_service_name,
)
from app_redis.logging.formatters import StructuredJSONFormatter

_logger = logging.getLogger(__name__)

# Logger that RedisClient command records go through by default
COMMAND_LOGGER = "app_redis"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

_default_service_name: Optional[str] = None

Level = Union[int, str]


def _handlers(log_file: Optional[str], enable_console: bool) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )
    return handlers


def configure_logging(
    service_name: str,
    level: Level = logging.INFO,
    log_file: Optional[str] = None,
    enable_console: bool = True,
    command_level: Optional[Level] = None,
) -> None:
    """Send every record to JSON handlers on the root logger.

    Existing root handlers are replaced.

    Args:
        service_name: Default service name of every record
        level: Root log level
        log_file: Path of a rotating log file
        enable_console: Also write to stdout
        command_level: Level of the ``app_redis`` logger, which carries one
            DEBUG record per Redis command; inherits ``level`` when None
    """
    global _default_service_name
    _default_service_name = service_name

    formatter = StructuredJSONFormatter(service_name=service_name)
    context_filter = ContextFilter()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handlers = _handlers(log_file, enable_console)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root.addHandler(handler)

    logging.getLogger(COMMAND_LOGGER).setLevel(
        command_level if command_level is not None else logging.NOTSET
    )

    _logger.info(
        "Logging configured",
        extra={
            "service_name": service_name,
            "level": logging.getLevelName(root.level),
            "log_file": log_file,
            "handlers_count": len(handlers),
        },
    )


def get_logger(name: str, **fields: Any) -> Union[logging.Logger, ContextLoggerAdapter]:
    """Logger for a module, optionally with fields stamped on each record.

    Example:
        logger = get_logger(__name__)
        sessions = get_logger(__name__, redis_id="sessions")
        sessions.info("Session cache warmed")
    """
    if _default_service_name and get_service_name() is None:
        set_service_name(_default_service_name)
    logger = logging.getLogger(name)
    if fields:
        return ContextLoggerAdapter(logger, fields)
    return logger


def disable_logging() -> None:
    """Replace root handlers with a NullHandler. Useful in tests."""
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(logging.NullHandler())
