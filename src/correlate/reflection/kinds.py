"""Classification of field annotations into kinds.

A kind is one of:
- primitive: scalars with a direct textual form (int, str, datetime, Enum, ...)
- container: list/dict/set/tuple and their parametrized forms
- shape: a user class with annotated fields (pydantic model, dataclass,
  plain annotated class) that the descriptor layer can walk into
- other: anything else (unions of several types, Any, typing constructs)

Nullable wrappers (``X | None``) are unwrapped before classification.
"""

from __future__ import annotations

import dataclasses
import inspect
import types
import typing
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Union, get_args, get_origin
from uuid import UUID

from pydantic import BaseModel

from correlate.metadata.tags import strip_annotated

PRIMITIVE_KINDS: tuple[type, ...] = (
    str,
    int,
    float,
    bool,
    Decimal,
    datetime,
    date,
    time,
    timedelta,
    UUID,
    bytes,
)

CONTAINER_KINDS: tuple[type, ...] = (list, dict, set, frozenset, tuple)

_NONE_TYPE = type(None)


def is_union(annotation: Any) -> bool:
    origin = get_origin(annotation)
    return origin is Union or origin is types.UnionType


def unwrap_nullable(annotation: Any) -> tuple[Any, bool]:
    """Split ``X | None`` into ``(X, True)``; other annotations give ``(annotation, False)``.

    ``Annotated`` metadata is stripped first. A union with several non-None
    members stays a union: ``int | str | None`` gives ``(int | str, True)``.
    """
    annotation = strip_annotated(annotation)
    if not is_union(annotation):
        return annotation, False
    args = get_args(annotation)
    if _NONE_TYPE not in args:
        return annotation, False
    rest = tuple(a for a in args if a is not _NONE_TYPE)
    if len(rest) == 1:
        return strip_annotated(rest[0]), True
    return Union[rest], True  # noqa: UP007


def is_primitive(kind: Any) -> bool:
    if not inspect.isclass(kind):
        return False
    if issubclass(kind, Enum):
        return True
    return kind in PRIMITIVE_KINDS


def is_container(kind: Any) -> bool:
    origin = get_origin(kind) or kind
    return inspect.isclass(origin) and issubclass(origin, CONTAINER_KINDS)


def is_shape(kind: Any) -> bool:
    """True for user classes whose annotated fields can be described and walked."""
    if not inspect.isclass(kind) or kind is Any:
        return False
    if is_primitive(kind) or is_container(kind):
        return False
    if issubclass(kind, BaseModel) or dataclasses.is_dataclass(kind):
        return True
    if kind.__module__ == "builtins":
        return False
    try:
        hints = typing.get_type_hints(kind)
    except (NameError, TypeError):
        return False
    return any(
        not name.startswith("_") and get_origin(hint) is not typing.ClassVar
        for name, hint in hints.items()
    )


def is_system_type(annotation: Any) -> bool:
    """True for anything that is not a user shape (primitives, containers, unions)."""
    kind, _ = unwrap_nullable(annotation)
    return not is_shape(kind)
