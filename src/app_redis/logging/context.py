"""Per-task log metadata kept in contextvars.

Values set here follow the current asyncio task, so concurrent requests
never see each other's request id or Redis identity.
"""
import contextvars
import logging
from typing import Any, Dict, Optional

CONTEXT_FIELDS = ("request_id", "redis_id", "service_name", "operation_name")

_fields: Dict[str, contextvars.ContextVar] = {
    name: contextvars.ContextVar(f"app_redis_{name}", default=None)
    for name in CONTEXT_FIELDS
}


def get_request_id() -> Optional[str]:
    return _fields["request_id"].get()


def get_redis_id() -> Optional[str]:
    return _fields["redis_id"].get()


def get_service_name() -> Optional[str]:
    return _fields["service_name"].get()


def get_operation_name() -> Optional[str]:
    return _fields["operation_name"].get()


def get_context() -> Dict[str, Any]:
    """Every context field, None where unset."""
    return {name: var.get() for name, var in _fields.items()}


def set_service_name(service_name: Optional[str]) -> None:
    """Set the service name for the current context and its children."""
    _fields["service_name"].set(service_name)


class log_context:
    """Adds fields to every record logged inside the block.

    Usable with ``with`` and ``async with``. Fields left as None keep their
    current value; everything is restored on exit.

    Example:
        async with log_context(request_id=request.request_id, redis_id="sessions"):
            await cache.get("user:1")
    """

    def __init__(
        self,
        request_id: Optional[str] = None,
        redis_id: Optional[str] = None,
        service_name: Optional[str] = None,
        operation_name: Optional[str] = None,
    ):
        values = {
            "request_id": request_id,
            "redis_id": redis_id,
            "service_name": service_name,
            "operation_name": operation_name,
        }
        self._values = {name: str(value) for name, value in values.items() if value is not None}
        self._tokens: Dict[str, contextvars.Token] = {}

    def __enter__(self) -> "log_context":
        self._tokens = {name: _fields[name].set(value) for name, value in self._values.items()}
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for name, token in self._tokens.items():
            _fields[name].reset(token)
        self._tokens = {}

    async def __aenter__(self) -> "log_context":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


class ContextFilter(logging.Filter):
    """Puts the current context on each record as ``extra_context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = {name: value for name, value in get_context().items() if value is not None}
        # Fields passed with extra= (or by a LoggerAdapter) win
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                context[name] = value
        record.extra_context = context
        return True


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter whose fixed fields are merged with each call's ``extra``.

    Fields given at the call site win over the adapter's own.

    Example:
        log = ContextLoggerAdapter(logger, {"request_id": "abc"})
        log.info("Cache miss", extra={"cache_key": "user:1"})
    """

    def process(self, msg: Any, kwargs: Dict[str, Any]):
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs
