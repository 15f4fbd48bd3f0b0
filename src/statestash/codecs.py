"""Value codecs: turn typed values into canonical strings and back.

A codec is anything with encode(value, context) and decode(text). `context`
is the provider's cumulative typed state, so an encoding may depend on a
sibling field. decode() raises on bad input; the store falls back to the
field default when it does.

codec_for() picks one of the standard codecs from a default value. The choice
is made once, when the schema is built.
"""

from __future__ import annotations

import enum
import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from statestash.errors import DeserializationError, SchemaError

Context = Mapping[str, Any]


class Codec(Protocol):
    def encode(self, value: Any, context: Context) -> str: ...

    def decode(self, text: str) -> Any: ...


class StringCodec:
    def encode(self, value: Any, context: Context) -> str:
        return str(value)

    def decode(self, text: str) -> str:
        return text

    def __repr__(self) -> str:
        return "StringCodec()"


class BoolCodec:
    def encode(self, value: Any, context: Context) -> str:
        return "true" if value else "false"

    def decode(self, text: str) -> bool:
        if text == "true":
            return True
        if text == "false":
            return False
        raise DeserializationError(text, "expected 'true' or 'false'")

    def __repr__(self) -> str:
        return "BoolCodec()"


class IntCodec:
    def encode(self, value: Any, context: Context) -> str:
        return str(int(value))

    def decode(self, text: str) -> int:
        try:
            return int(text)
        except ValueError as e:
            raise DeserializationError(text, "not an integer") from e

    def __repr__(self) -> str:
        return "IntCodec()"


class FloatCodec:
    def encode(self, value: Any, context: Context) -> str:
        return repr(float(value))

    def decode(self, text: str) -> float:
        try:
            return float(text)
        except ValueError as e:
            raise DeserializationError(text, "not a number") from e

    def __repr__(self) -> str:
        return "FloatCodec()"


class DateTimeCodec:
    """ISO-8601 in UTC at millisecond precision, e.g. 1970-01-01T00:00:00.002Z.

    Naive datetimes are taken to be UTC. Precision below a millisecond is
    dropped on encode, so two values that differ only there encode equal.
    """

    def encode(self, value: Any, context: Context) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        text = value.astimezone(UTC).isoformat(timespec="milliseconds")
        return text.replace("+00:00", "Z")

    def decode(self, text: str) -> datetime:
        try:
            value = datetime.fromisoformat(text)
        except ValueError as e:
            raise DeserializationError(text, "not an ISO-8601 datetime") from e
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def __repr__(self) -> str:
        return "DateTimeCodec()"


class EnumCodec:
    """Encodes enum members by name."""

    def __init__(self, enum_cls: type[enum.Enum]) -> None:
        self._enum_cls = enum_cls

    def encode(self, value: Any, context: Context) -> str:
        return value.name

    def decode(self, text: str) -> enum.Enum:
        try:
            return self._enum_cls[text]
        except KeyError as e:
            raise DeserializationError(text, f"not a {self._enum_cls.__name__} member") from e

    def __repr__(self) -> str:
        return f"EnumCodec({self._enum_cls.__name__})"


class JsonCodec:
    """Compact JSON with sorted keys, for lists, dicts and None."""

    def encode(self, value: Any, context: Context) -> str:
        return json.dumps(value, sort_keys=True, separators=(",", ":"))

    def decode(self, text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DeserializationError(text, e.msg) from e

    def __repr__(self) -> str:
        return "JsonCodec()"


# bool must precede int: bool is an int subclass.
_BY_TYPE: list[tuple[type, Codec]] = [
    (bool, BoolCodec()),
    (int, IntCodec()),
    (float, FloatCodec()),
    (str, StringCodec()),
    (datetime, DateTimeCodec()),
    (list, JsonCodec()),
    (dict, JsonCodec()),
    (type(None), JsonCodec()),
]


def codec_for(default: Any) -> Codec:
    """Pick the standard codec for a default value."""
    if isinstance(default, enum.Enum):
        return EnumCodec(type(default))
    for kind, codec in _BY_TYPE:
        if isinstance(default, kind):
            return codec
    raise SchemaError(
        f"No codec for default of type {type(default).__name__}; pass one explicitly",
        details={"type": type(default).__name__},
    )
