"""Reflective type description: fields, methods, flattened paths, construction.

Re-exports the descriptor layer for convenient imports:
    from correlate.reflection import DescriptorCache, TypeDescriptor, FieldRef
"""

from correlate.reflection.cache import DescriptorCache, get_default_cache
from correlate.reflection.construct import instantiate, zero_value
from correlate.reflection.descriptor import (
    FieldRef,
    FlattenedField,
    MethodRef,
    TypeDescriptor,
    build_descriptor,
    normalize_name,
)
from correlate.reflection.kinds import (
    is_container,
    is_primitive,
    is_shape,
    is_system_type,
    unwrap_nullable,
)

__all__ = [
    # descriptors
    "FieldRef",
    "MethodRef",
    "FlattenedField",
    "TypeDescriptor",
    "build_descriptor",
    "normalize_name",
    # cache
    "DescriptorCache",
    "get_default_cache",
    # construction
    "instantiate",
    "zero_value",
    # kinds
    "is_primitive",
    "is_container",
    "is_shape",
    "is_system_type",
    "unwrap_nullable",
]
