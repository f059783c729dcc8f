"""Zero values and scratch-instance construction for shapes."""

from __future__ import annotations

import dataclasses
import typing
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, get_origin
from uuid import UUID

from pydantic import BaseModel

from correlate.errors import TypeMismatch
from correlate.reflection.kinds import is_container, is_shape, unwrap_nullable

_PRIMITIVE_ZEROS: dict[type, Any] = {
    str: "",
    int: 0,
    float: 0.0,
    bool: False,
    Decimal: Decimal(0),
    datetime: datetime.min,
    date: date.min,
    time: time(),
    timedelta: timedelta(),
    UUID: UUID(int=0),
    bytes: b"",
}


def zero_value(annotation: Any) -> Any:
    """Return the default/zero value of a field annotation's kind.

    Nullable wrappers and unclassifiable annotations give None. Shapes give a
    scratch instance built by instantiate(); a shape that would contain itself
    through required fields gets None at the point of repetition.
    """
    return _zero(annotation, frozenset())


def instantiate(shape: type, *args: Any, **kwargs: Any) -> Any:
    """Construct a scratch instance of a shape.

    With arguments, the constructor is called directly. Without arguments,
    required fields are filled with zero values so that models with mandatory
    fields can still serve as a mapping skeleton.

    Raises:
        TypeMismatch: If the shape cannot be constructed.
    """
    if args or kwargs:
        try:
            return shape(*args, **kwargs)
        except (TypeError, ValueError) as e:
            raise TypeMismatch(shape, args or kwargs, str(e)) from e
    return _scratch(shape, frozenset())


def _zero(annotation: Any, building: frozenset[type]) -> Any:
    kind, nullable = unwrap_nullable(annotation)
    if nullable:
        return None
    if isinstance(kind, type) and issubclass(kind, Enum):
        return next(iter(kind), None)
    if kind in _PRIMITIVE_ZEROS:
        return _PRIMITIVE_ZEROS[kind]
    if is_container(kind):
        origin = get_origin(kind) or kind
        return origin()
    if is_shape(kind):
        if kind in building:
            return None
        return _scratch(kind, building)
    return None


def _scratch(shape: type, building: frozenset[type]) -> Any:
    building = building | {shape}
    try:
        if issubclass(shape, BaseModel):
            required = {
                name: _zero(info.annotation, building)
                for name, info in shape.model_fields.items()
                if info.is_required()
            }
            return shape.model_construct(**required)
        if dataclasses.is_dataclass(shape):
            hints = typing.get_type_hints(shape)
            required = {
                f.name: _zero(hints.get(f.name, Any), building)
                for f in dataclasses.fields(shape)
                if f.init
                and f.default is dataclasses.MISSING
                and f.default_factory is dataclasses.MISSING
            }
            return shape(**required)
        return shape()
    except (TypeError, ValueError) as e:
        raise TypeMismatch(shape, None, f"cannot construct scratch instance: {e}") from e
