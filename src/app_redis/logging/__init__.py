"""Structured JSON logging utility."""

from app_redis.logging.context import (  # noqa: F401
    ContextFilter,
    ContextLoggerAdapter,
    get_context,
    get_operation_name,
    get_redis_id,
    get_request_id,
    get_service_name,
    log_context,
)
from app_redis.logging.formatters import StructuredJSONFormatter  # noqa: F401
from app_redis.logging.factory import configure_logging, disable_logging, get_logger  # noqa: F401

__all__ = [
    # Context management
    "get_request_id",
    "get_redis_id",
    "get_service_name",
    "get_operation_name",
    "get_context",
    "log_context",
    "ContextFilter",
    "ContextLoggerAdapter",
    # Formatters
    "StructuredJSONFormatter",
    # Factory
    "configure_logging",
    "get_logger",
    "disable_logging",
]
