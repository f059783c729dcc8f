"""Correlation metadata attached to shapes and their fields.

Re-exports the tag types for convenient imports:
    from correlate.metadata import FromField, ToField, MapsTo
"""

from correlate.metadata.tags import (
    CorrelationTag,
    Direction,
    FromField,
    FromKey,
    MapsFrom,
    MapsTo,
    ShapeTag,
    ToField,
    ToKey,
    default_counterpart,
    field_tags,
    first_tag,
    shape_tags,
)

__all__ = [
    "Direction",
    # field tags
    "CorrelationTag",
    "FromField",
    "ToField",
    "FromKey",
    "ToKey",
    # shape tags
    "ShapeTag",
    "MapsFrom",
    "MapsTo",
    # lookups
    "field_tags",
    "first_tag",
    "shape_tags",
    "default_counterpart",
]
