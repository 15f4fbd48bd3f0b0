"""statestash: typed state providers over one serialized key/value mapping."""

from importlib.metadata import version as _version

__version__ = _version("statestash")

from statestash.errors import (
    StateStashError,
    SchemaError,
    RegistrationConflict,
    UnregisteredProviderError,
    DeserializationError,
)
from statestash.codecs import (
    Codec,
    StringCodec,
    BoolCodec,
    IntCodec,
    FloatCodec,
    DateTimeCodec,
    EnumCodec,
    JsonCodec,
    codec_for,
)
from statestash.schema import Field, Schema
from statestash.scheduler import AsyncioScheduler, ManualScheduler, Debouncer
from statestash.store import Store, ProviderHandle
# textual NOT auto-imported — opt-in only

__all__ = [
    "StateStashError",
    "SchemaError",
    "RegistrationConflict",
    "UnregisteredProviderError",
    "DeserializationError",
    "Codec",
    "StringCodec",
    "BoolCodec",
    "IntCodec",
    "FloatCodec",
    "DateTimeCodec",
    "EnumCodec",
    "JsonCodec",
    "codec_for",
    "Field",
    "Schema",
    "AsyncioScheduler",
    "ManualScheduler",
    "Debouncer",
    "Store",
    "ProviderHandle",
]
