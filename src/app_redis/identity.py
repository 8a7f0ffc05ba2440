"""Symbolic identifiers for configured Redis backends."""
from typing import ClassVar


class RedisID(str):
    """Name of one configured Redis backend.

    Behaves like the plain string it wraps, so ``RedisID("one") == "one"``
    and both hash the same way. Several identities can coexist in one
    application, each with its own configuration and pools.

    Example:
        ONE = RedisID("one")
        app.redis(ONE).configuration = RedisConfiguration(port=6380)
    """

    DEFAULT: ClassVar["RedisID"]

    def __new__(cls, value: str) -> "RedisID":
        if isinstance(value, RedisID):
            return value
        if not isinstance(value, str) or not value:
            raise ValueError("RedisID must be a non-empty string")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"RedisID({str.__repr__(self)})"


RedisID.DEFAULT = RedisID("default")
