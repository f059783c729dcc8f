"""Metadata-driven object-to-object mapping engine.

Resolves every field of a target shape from the best matching field of a
source value, or from a value-getter callback for tagged fields.
"""

from correlate.mapping.engine import (
    AsyncValueGetter,
    Mapper,
    ValueGetter,
    get_default_mapper,
    is_empty,
    map_value,
    map_with_value_getter,
    map_with_value_getter_async,
)
from correlate.mapping.report import MappingReport

__all__ = [
    "Mapper",
    "MappingReport",
    "ValueGetter",
    "AsyncValueGetter",
    "get_default_mapper",
    "is_empty",
    "map_value",
    "map_with_value_getter",
    "map_with_value_getter_async",
]
