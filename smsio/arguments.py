"""Encode action arguments as JSON-compatible values for delivery jobs.

Only the arguments cross into the job, so they must survive a round trip
through the broker. Values JSON can't express natively are tagged with a
single-key object such as ``{"__datetime__": "2024-01-01T00:00:00"}``.
"""

from collections.abc import Callable
from collections.abc import Mapping
from datetime import date
from datetime import datetime
from datetime import timedelta
from decimal import Decimal
from decimal import InvalidOperation
from typing import Any


class SerializationFailure(TypeError):
    """An argument can't be passed to a delivery job."""


class DeserializationFailure(ValueError):
    """A serialized argument can't be reconstructed."""


TAG_PREFIX = "__"

ENCODERS: list[tuple[type, str, Callable[[Any], Any]]] = [
    # datetime before date since it's a subclass
    (datetime, "__datetime__", lambda value: value.isoformat()),
    (date, "__date__", lambda value: value.isoformat()),
    (timedelta, "__timedelta__", lambda value: value.total_seconds()),
    (Decimal, "__decimal__", str),
    (tuple, "__tuple__", lambda value: [serialize(item) for item in value]),
]

DECODERS: dict[str, Callable[[Any], Any]] = {
    "__datetime__": datetime.fromisoformat,
    "__date__": date.fromisoformat,
    "__timedelta__": lambda value: timedelta(seconds=value),
    "__decimal__": Decimal,
    "__tuple__": lambda value: tuple(deserialize(item) for item in value),
}


def serialize(value: Any, /) -> Any:
    match value:
        case None | bool() | int() | float() | str():
            return value
        case list():
            return [serialize(item) for item in value]
        case Mapping():
            if not all(isinstance(key, str) for key in value):
                raise SerializationFailure(
                    f"Only string keys can be serialized, got: {list(value)!r}"
                )
            if len(value) == 1 and next(iter(value)).startswith(TAG_PREFIX):
                raise SerializationFailure(
                    f"Keys starting with {TAG_PREFIX!r} are reserved, "
                    f"got: {next(iter(value))!r}"
                )
            return {key: serialize(item) for key, item in value.items()}

    for kind, tag, encode in ENCODERS:
        if isinstance(value, kind):
            return {tag: encode(value)}

    raise SerializationFailure(
        f"Unsupported argument type {type(value).__qualname__}: {value!r}"
    )


def deserialize(value: Any, /) -> Any:
    match value:
        case None | bool() | int() | float() | str():
            return value
        case list():
            return [deserialize(item) for item in value]
        case dict() if len(value) == 1 and next(iter(value)).startswith(TAG_PREFIX):
            [(tag, encoded)] = value.items()
            decoder = DECODERS.get(tag)
            if decoder is None:
                raise DeserializationFailure(f"Unknown argument tag: {tag!r}")
            try:
                return decoder(encoded)
            except (TypeError, ValueError, InvalidOperation) as error:
                raise DeserializationFailure(
                    f"Malformed {tag} argument: {encoded!r}"
                ) from error
        case dict():
            return {key: deserialize(item) for key, item in value.items()}

    raise DeserializationFailure(f"Unexpected serialized argument: {value!r}")
