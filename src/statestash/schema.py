"""Schema: the typed view of one provider's slice of the canonical mapping.

A Schema is an ordered, immutable list of Fields plus an optional prefix.
It translates between a provider's typed values and prefixed string
key/values, and tells the store which prefixed keys it owns.

Compact dict config, as callers usually write it:

    Schema.from_config({"zoom": 3, "center": "0,0", "_": "map"})
    # owns "map.zoom" and "map.center"

The reserved key "_" holds the prefix. A Field value carries an explicit codec.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from statestash.codecs import Codec, Context, codec_for
from statestash.errors import SchemaError

PREFIX_KEY = "_"


@dataclass(frozen=True)
class Field:
    """One logical key with its default and codec."""

    key: str
    default: Any
    codec: Codec | None = None

    def resolved(self) -> Field:
        if self.codec is not None:
            return self
        return Field(self.key, self.default, codec_for(self.default))


class Schema:
    """Ordered set of Fields under an optional prefix."""

    __slots__ = ("_fields", "_prefix", "_prefixed")

    def __init__(self, fields: list[Field], prefix: str | None = None) -> None:
        if prefix is not None and (not isinstance(prefix, str) or not prefix):
            raise SchemaError(f"Invalid prefix: {prefix!r}", details={"prefix": prefix})
        self._prefix = prefix
        self._fields: dict[str, Field] = {}
        for field in fields:
            if field.key in self._fields:
                raise SchemaError(f"Duplicate key: {field.key}", details={"key": field.key})
            if field.key == PREFIX_KEY:
                raise SchemaError(f"Reserved key: {PREFIX_KEY}", details={"key": field.key})
            self._fields[field.key] = field.resolved()
        self._prefixed = {key: self._prefix_key(key) for key in self._fields}

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> Schema:
        """Build a Schema from {key: default | Field, "_": prefix}."""
        prefix = config.get(PREFIX_KEY)
        fields = []
        for key, value in config.items():
            if key == PREFIX_KEY:
                continue
            if isinstance(value, Field):
                if value.key != key:
                    raise SchemaError(
                        f"Field key {value.key!r} does not match config key {key!r}",
                        details={"key": key},
                    )
                fields.append(value)
            else:
                fields.append(Field(key, value))
        return cls(fields, prefix=prefix)

    @classmethod
    def coerce(cls, config: Schema | list[Field] | Mapping[str, Any]) -> Schema:
        if isinstance(config, Schema):
            return config
        if isinstance(config, list):
            return cls(config)
        return cls.from_config(config)

    def _prefix_key(self, key: str) -> str:
        return f"{self._prefix}.{key}" if self._prefix else key

    def _field(self, key: str) -> Field:
        try:
            return self._fields[key]
        except KeyError:
            raise KeyError(f"Unknown key: {key}") from None

    @property
    def prefix(self) -> str | None:
        return self._prefix

    def serialize(self, key: str, value: Any, context: Context) -> str:
        return self._field(key).codec.encode(value, context)

    def deserialize(self, key: str, text: str) -> Any:
        """Decode a canonical string. Raises whatever the codec raises."""
        return self._field(key).codec.decode(text)

    def get_default(self, key: str) -> Any:
        return self._field(key).default

    def get_prefixed(self, key: str) -> str:
        self._field(key)
        return self._prefixed[key]

    def keys(self) -> list[str]:
        return list(self._fields)

    def for_each_key(self, visitor: Callable[[str, str], None]) -> None:
        """Call visitor(key, prefixed) for every key, in declaration order."""
        for key, prefixed in self:
            visitor(key, prefixed)

    def conflicts(self, other: Schema) -> str | None:
        """First prefixed key owned by both schemas, or None."""
        theirs = set(other._prefixed.values())
        for prefixed in self._prefixed.values():
            if prefixed in theirs:
                return prefixed
        return None

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._prefixed.items())

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        keys = ", ".join(self._fields)
        if self._prefix:
            return f"Schema({keys}, prefix={self._prefix!r})"
        return f"Schema({keys})"
