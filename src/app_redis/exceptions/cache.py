"""Cache-related exceptions."""
from typing import Optional


class CacheError(Exception):
    """Base exception for cache errors.

    Args:
        message: Human-readable error message (class default when None)
        cache_key: Key being read or written
        details: Additional error context
    """

    default_message = "Cache operation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        cache_key: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.message = message or self.default_message
        self.cache_key = cache_key
        self.details = dict(details or {})
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cache_key:
            parts.append(f"Key: {self.cache_key}")
        if self.details.get("value_type"):
            parts.append(f"Type: {self.details['value_type']}")
        return " | ".join(parts)


class CacheSerializationError(CacheError):
    """A value could not cross between Python and its stored form.

    Args:
        value_type: Name of the value's type, or of the requested type
        original_error: Error raised by the coder
    """

    default_message = "Cache serialization failed"

    def __init__(
        self,
        message: Optional[str] = None,
        cache_key: Optional[str] = None,
        value_type: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {"value_type": value_type} if value_type is not None else None
        super().__init__(message, cache_key, details)
        self.original_error = original_error


class CacheEncodingError(CacheSerializationError):
    """A value could not be encoded for storage. Nothing was written."""

    default_message = "Cache value could not be encoded"


class CacheDecodingError(CacheSerializationError):
    """Stored data could not be decoded into the requested type."""

    default_message = "Cache value could not be decoded"
