"""Encoders and decoders between Python values and Redis values.

A cache is built from one encoder and one decoder. The encoder turns any
supported value into ``bytes`` (or ``str``) that Redis can store; the
decoder turns stored bytes back into a value of the requested type.

Two default pairs are provided:
- JSON (pydantic-core), the default
- Property list (``plistlib``), binary or XML

Any object with matching ``encode``/``decode`` methods can be used instead.
"""
import json
import logging
import plistlib
from functools import lru_cache
from typing import Any, Optional, Protocol, Tuple, Type, TypeVar, Union, runtime_checkable

import pydantic_core
from pydantic import TypeAdapter, ValidationError

from app_redis.exceptions.cache import CacheDecodingError, CacheEncodingError


logger = logging.getLogger(__name__)

T = TypeVar("T")

RedisValue = Union[bytes, str]


@runtime_checkable
class CacheEncoder(Protocol):
    """Converts a value to something Redis can store."""

    def encode(self, value: Any) -> RedisValue:
        """Encode ``value``.

        Raises:
            CacheEncodingError: If the value cannot be encoded
        """
        ...


@runtime_checkable
class CacheDecoder(Protocol):
    """Converts stored Redis data back into a value."""

    def decode(self, as_type: Optional[Type[T]], data: bytes) -> T:
        """Decode ``data`` into ``as_type`` (plain data when None).

        Raises:
            CacheDecodingError: If the data cannot be decoded
        """
        ...


@lru_cache(maxsize=256)
def _adapter(as_type: Any) -> TypeAdapter:
    return TypeAdapter(as_type)


def _type_name(value_or_type: Any) -> str:
    if isinstance(value_or_type, type):
        return value_or_type.__name__
    return getattr(value_or_type, "__name__", None) or repr(value_or_type)


def to_bytes(data: RedisValue) -> bytes:
    """Normalise a Redis reply to bytes."""
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"Expected bytes or str from Redis, got {type(data).__name__}")


class JSONCacheEncoder:
    """JSON encoder built on pydantic-core.

    Supports dicts, lists, scalars, pydantic models, dataclasses, enums,
    UUIDs and datetimes (ISO 8601).

    Args:
        indent: Pretty-print indentation (None for compact output)
        by_alias: Use field aliases when dumping pydantic models
    """

    def __init__(self, indent: Optional[int] = None, by_alias: bool = False):
        self.indent = indent
        self.by_alias = by_alias

    def encode(self, value: Any) -> bytes:
        try:
            return pydantic_core.to_json(value, indent=self.indent, by_alias=self.by_alias)
        except (pydantic_core.PydanticSerializationError, TypeError, ValueError) as e:
            logger.error(
                f"JSON encoding failed: {e}",
                extra={"value_type": type(value).__name__},
            )
            raise CacheEncodingError(
                f"Value is not JSON-encodable: {e}",
                value_type=type(value).__name__,
                original_error=e,
            ) from e


class JSONCacheDecoder:
    """JSON decoder that validates into the requested type with pydantic.

    Args:
        strict: Use pydantic strict mode (no type coercion)
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def decode(self, as_type: Optional[Type[T]], data: bytes) -> T:
        try:
            raw = to_bytes(data)
            if as_type is None:
                return json.loads(raw)
            return _adapter(as_type).validate_json(raw, strict=self.strict)
        except (ValidationError, ValueError, TypeError) as e:
            logger.error(
                f"JSON decoding failed: {e}",
                extra={"value_type": _type_name(as_type)},
            )
            raise CacheDecodingError(
                f"Invalid JSON data for {_type_name(as_type)}: {e}",
                value_type=_type_name(as_type),
                original_error=e,
            ) from e


class PropertyListCacheEncoder:
    """Property list encoder using ``plistlib``.

    Values are first dumped to Python primitives with pydantic, so models and
    dataclasses work. ``None`` is not representable in a property list.

    Args:
        fmt: ``plistlib.FMT_BINARY`` (default) or ``plistlib.FMT_XML``
    """

    def __init__(self, fmt: plistlib.PlistFormat = plistlib.FMT_BINARY):
        self.fmt = fmt

    def encode(self, value: Any) -> bytes:
        try:
            primitive = _adapter(type(value)).dump_python(value)
            return plistlib.dumps(primitive, fmt=self.fmt, sort_keys=True)
        except (pydantic_core.PydanticSerializationError, TypeError, ValueError, OverflowError) as e:
            logger.error(
                f"Property list encoding failed: {e}",
                extra={"value_type": type(value).__name__},
            )
            raise CacheEncodingError(
                f"Value is not property-list-encodable: {e}",
                value_type=type(value).__name__,
                original_error=e,
            ) from e


class PropertyListCacheDecoder:
    """Property list decoder; detects binary and XML formats."""

    def decode(self, as_type: Optional[Type[T]], data: bytes) -> T:
        try:
            primitive = plistlib.loads(to_bytes(data))
            if as_type is None:
                return primitive
            return _adapter(as_type).validate_python(primitive)
        except (plistlib.InvalidFileException, ValidationError, ValueError, TypeError) as e:
            logger.error(
                f"Property list decoding failed: {e}",
                extra={"value_type": _type_name(as_type)},
            )
            raise CacheDecodingError(
                f"Invalid property list data for {_type_name(as_type)}: {e}",
                value_type=_type_name(as_type),
                original_error=e,
            ) from e


def encode_value(encoder: CacheEncoder, value: Any, cache_key: Optional[str] = None) -> RedisValue:
    """Run an encoder, reporting any failure as CacheEncodingError."""
    try:
        return encoder.encode(value)
    except CacheEncodingError as e:
        e.cache_key = e.cache_key or cache_key
        raise
    except Exception as e:
        raise CacheEncodingError(
            f"{type(encoder).__name__} failed: {e}",
            cache_key=cache_key,
            value_type=type(value).__name__,
            original_error=e,
        ) from e


def decode_value(
    decoder: CacheDecoder,
    as_type: Optional[Type[T]],
    data: bytes,
    cache_key: Optional[str] = None,
) -> T:
    """Run a decoder, reporting any failure as CacheDecodingError."""
    try:
        return decoder.decode(as_type, data)
    except CacheDecodingError as e:
        e.cache_key = e.cache_key or cache_key
        raise
    except Exception as e:
        raise CacheDecodingError(
            f"{type(decoder).__name__} failed: {e}",
            cache_key=cache_key,
            value_type=_type_name(as_type),
            original_error=e,
        ) from e


def get_coders(coder_type: str = "json") -> Tuple[CacheEncoder, CacheDecoder]:
    """Default encoder/decoder pair by name.

    Args:
        coder_type: ``"json"`` or ``"plist"``

    Returns:
        (encoder, decoder)

    Raises:
        ValueError: Unknown coder type
    """
    coders = {
        "json": (JSONCacheEncoder, JSONCacheDecoder),
        "plist": (PropertyListCacheEncoder, PropertyListCacheDecoder),
    }

    if coder_type not in coders:
        raise ValueError(
            f"Unknown coder type '{coder_type}', expected one of {sorted(coders)}"
        )

    encoder_cls, decoder_cls = coders[coder_type]
    return encoder_cls(), decoder_cls()
