"""Metadata-driven object-to-object mapping.

Public API re-exported for convenient imports:
    from correlate import Mapper, FromField, ToField, from_string, to_string
"""

from correlate.codec import StructuredCodec, from_string, to_string
from correlate.config import CodecSettings, ReferenceLoopHandling, get_settings
from correlate.errors import (
    Cancelled,
    CorrelateError,
    DeserializationError,
    FormatError,
    SerializationError,
    TypeMismatch,
    UnknownField,
    UnknownMethod,
    ValidationError,
)
from correlate.mapping import (
    Mapper,
    MappingReport,
    map_value,
    map_with_value_getter,
    map_with_value_getter_async,
)
from correlate.metadata import (
    CorrelationTag,
    Direction,
    FromField,
    FromKey,
    MapsFrom,
    MapsTo,
    ShapeTag,
    ToField,
    ToKey,
)
from correlate.reflection import (
    DescriptorCache,
    FieldRef,
    FlattenedField,
    TypeDescriptor,
    instantiate,
    is_system_type,
    normalize_name,
)

__all__ = [
    # mapping
    "Mapper",
    "MappingReport",
    "map_value",
    "map_with_value_getter",
    "map_with_value_getter_async",
    # metadata
    "Direction",
    "CorrelationTag",
    "FromField",
    "ToField",
    "FromKey",
    "ToKey",
    "ShapeTag",
    "MapsFrom",
    "MapsTo",
    # reflection
    "DescriptorCache",
    "TypeDescriptor",
    "FieldRef",
    "FlattenedField",
    "instantiate",
    "is_system_type",
    "normalize_name",
    # codec
    "StructuredCodec",
    "CodecSettings",
    "ReferenceLoopHandling",
    "get_settings",
    "from_string",
    "to_string",
    # errors
    "CorrelateError",
    "UnknownField",
    "UnknownMethod",
    "TypeMismatch",
    "FormatError",
    "DeserializationError",
    "SerializationError",
    "ValidationError",
    "Cancelled",
]
