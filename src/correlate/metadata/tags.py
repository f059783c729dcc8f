"""Correlation tags: declarative links between fields of two shapes.

Field-level tags are attached through ``typing.Annotated`` metadata::

    class PersonDto(BaseModel):
        full_name: Annotated[str, FromField("name")] = ""
        city: Annotated[str, FromField("address.city", allow_empty=False)] = ""

Shape-level tags are listed in a ``__correlations__`` class variable and only
supply a default counterpart shape when the engine is not given one::

    class Person(BaseModel):
        __correlations__: ClassVar[tuple[ShapeTag, ...]] = (MapsTo(PersonDto),)

Tags are plain frozen dataclasses. Nothing is validated at attachment time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any, get_args, get_origin


class Direction(StrEnum):
    """Which side of a correlation declares the counterpart name.

    FROM: The tagged field wants data from the named counterpart.
    TO: The tagged field feeds the named counterpart.
    """

    FROM = "from"
    TO = "to"


@dataclass(frozen=True)
class CorrelationTag:
    """A directional link from one field to a named counterpart field."""

    name: str
    allow_empty: bool = True

    direction: Direction = Direction.FROM


@dataclass(frozen=True)
class FromField(CorrelationTag):
    """Target-side tag: populate this field from the named source path."""

    direction: Direction = Direction.FROM


@dataclass(frozen=True)
class ToField(CorrelationTag):
    """Source-side tag: this field feeds the named target field."""

    direction: Direction = Direction.TO


@dataclass(frozen=True)
class FromKey(FromField):
    """Like FromField, but names an external key (settings, headers, rows)."""


@dataclass(frozen=True)
class ToKey(ToField):
    """Like ToField, but names an external key."""


@dataclass(frozen=True)
class ShapeTag:
    """Whole-shape association used as a default counterpart type."""

    direction: Direction
    counterpart: type


def MapsFrom(counterpart: type) -> ShapeTag:  # noqa: N802
    return ShapeTag(Direction.FROM, counterpart)


def MapsTo(counterpart: type) -> ShapeTag:  # noqa: N802
    return ShapeTag(Direction.TO, counterpart)


def field_tags(annotation: Any) -> tuple[CorrelationTag, ...]:
    """Extract correlation tags from an ``Annotated`` field annotation.

    Args:
        annotation: A field annotation, possibly ``Annotated[T, tag, ...]``.

    Returns:
        Tags in declaration order; empty for unannotated types.
    """
    if get_origin(annotation) is not Annotated:
        return ()
    return tuple(m for m in annotation.__metadata__ if isinstance(m, CorrelationTag))


def first_tag(
    tags: tuple[CorrelationTag, ...], tag_type: type[CorrelationTag]
) -> CorrelationTag | None:
    """Return the first tag that is an instance of ``tag_type`` (subclasses match)."""
    for tag in tags:
        if isinstance(tag, tag_type):
            return tag
    return None


def shape_tags(cls: type) -> tuple[ShapeTag, ...]:
    """Collect ``__correlations__`` from a class and its bases, bases first."""
    collected: list[ShapeTag] = []
    for klass in reversed(cls.__mro__):
        declared = klass.__dict__.get("__correlations__", ())
        collected.extend(t for t in declared if isinstance(t, ShapeTag) and t not in collected)
    return tuple(collected)


def default_counterpart(cls: type, direction: Direction) -> type | None:
    """Counterpart of the first shape tag with the given direction, if any."""
    for tag in shape_tags(cls):
        if tag.direction == direction:
            return tag.counterpart
    return None


def strip_annotated(annotation: Any) -> Any:
    """Drop ``Annotated`` metadata, returning the bare type."""
    while get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    return annotation
