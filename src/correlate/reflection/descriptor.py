"""Reflective summaries of shapes: fields, methods and flattened paths.

A TypeDescriptor is built once per shape by build_descriptor() and is
immutable afterwards. Field and method lookups are keyed by normalized name
(ASCII case-folded), which is the one canonical comparison policy across the
library: ``FullName``, ``fullname`` and ``FULLNAME`` are the same field.
"""

from __future__ import annotations

import dataclasses
import inspect
import typing
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, get_origin

from loguru import logger
from pydantic import BaseModel
from pydantic_core import PydanticUndefined

from correlate.errors import UnknownField, UnknownMethod
from correlate.metadata.tags import CorrelationTag, ShapeTag, field_tags, first_tag, shape_tags
from correlate.reflection.kinds import is_shape, unwrap_nullable

_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


class _Missing:
    """Marks a field declared without a default value."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def normalize_name(name: str) -> str:
    """ASCII case-fold a field name or dotted path; non-ASCII letters are kept as-is."""
    return name.strip().translate(_ASCII_LOWER)


@dataclass(frozen=True)
class FieldRef:
    """One declared field of a shape."""

    name: str
    annotation: Any
    tags: tuple[CorrelationTag, ...] = ()
    default: Any = MISSING
    default_factory: Callable[[], Any] | None = None

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING or self.default_factory is not None

    @property
    def kind(self) -> Any:
        """The annotation with Annotated metadata and a nullable wrapper removed."""
        return unwrap_nullable(self.annotation)[0]

    @property
    def nullable(self) -> bool:
        return unwrap_nullable(self.annotation)[1]

    @property
    def is_compound(self) -> bool:
        return is_shape(self.kind)

    def tag(self, tag_type: type[CorrelationTag]) -> CorrelationTag | None:
        return first_tag(self.tags, tag_type)


@dataclass(frozen=True)
class MethodRef:
    """A public method of a shape, remembered under its declared name."""

    name: str
    function: Callable[..., Any]


@dataclass(frozen=True)
class FlattenedField:
    """A field reachable from a root shape, addressed by a normalized dotted path.

    ``chain`` holds the declared attribute names walked from the root, so the
    value can be read or written on an instance. ``is_leaf`` is False only for
    compound fields recorded as branches.
    """

    path: str
    chain: tuple[str, ...]
    field: FieldRef
    is_leaf: bool = True


@dataclass(frozen=True)
class TypeDescriptor:
    """Cached reflective summary of a shape."""

    shape: type
    fields: dict[str, FieldRef] = field(default_factory=dict)
    methods: dict[str, MethodRef] = field(default_factory=dict)
    shape_tags: tuple[ShapeTag, ...] = ()

    def field(self, name: str) -> FieldRef:
        """Look up a direct field by (case-insensitive) name.

        Raises:
            UnknownField: If the shape declares no such field.
        """
        ref = self.fields.get(normalize_name(name))
        if ref is None:
            raise UnknownField(self.shape, name)
        return ref

    def has_field(self, name: str) -> bool:
        return normalize_name(name) in self.fields

    def method(self, name: str) -> MethodRef:
        ref = self.methods.get(normalize_name(name))
        if ref is None:
            raise UnknownMethod(self.shape, name)
        return ref


def build_descriptor(shape: type) -> TypeDescriptor:
    """Reflect a shape's fields and methods.

    Args:
        shape: A pydantic model, dataclass or plain annotated class.

    Returns:
        A new TypeDescriptor. Callers normally go through DescriptorCache
        instead, which memoizes the result per shape.

    Raises:
        TypeError: If ``shape`` is not a class or its annotations cannot be resolved.
    """
    if not inspect.isclass(shape):
        msg = f"Expected a class to describe, got {shape!r}"
        raise TypeError(msg)

    fields: dict[str, FieldRef] = {}
    for ref in _declared_fields(shape):
        key = ref.normalized_name
        if key in fields:
            logger.warning(
                "Field name collision on {shape}: '{name}' normalizes to '{key}' "
                "already used by '{first}'; keeping the first",
                shape=shape.__qualname__,
                name=ref.name,
                key=key,
                first=fields[key].name,
            )
            continue
        fields[key] = ref

    return TypeDescriptor(
        shape=shape,
        fields=fields,
        methods=_declared_methods(shape),
        shape_tags=shape_tags(shape),
    )


def _declared_fields(shape: type) -> list[FieldRef]:
    if issubclass(shape, BaseModel):
        # pydantic has already resolved annotations; Annotated extras live in metadata
        refs = []
        for name, info in shape.model_fields.items():
            default = MISSING if info.default is PydanticUndefined else info.default
            refs.append(
                FieldRef(
                    name=name,
                    annotation=info.annotation,
                    tags=tuple(m for m in info.metadata if isinstance(m, CorrelationTag)),
                    default=default,
                    default_factory=info.default_factory,
                )
            )
        return refs

    hints = _type_hints(shape)
    if dataclasses.is_dataclass(shape):
        return [
            FieldRef(
                name=f.name,
                annotation=hints.get(f.name, Any),
                tags=field_tags(hints.get(f.name, Any)),
                default=MISSING if f.default is dataclasses.MISSING else f.default,
                default_factory=(
                    None if f.default_factory is dataclasses.MISSING else f.default_factory
                ),
            )
            for f in dataclasses.fields(shape)
        ]

    refs = []
    for name, annotation in hints.items():
        if name.startswith("_") or get_origin(annotation) is typing.ClassVar:
            continue
        refs.append(
            FieldRef(
                name=name,
                annotation=annotation,
                tags=field_tags(annotation),
                default=getattr(shape, name, MISSING),
            )
        )
    return refs


def _type_hints(shape: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(shape, include_extras=True)
    except NameError as e:
        msg = f"Cannot resolve annotations of {shape.__qualname__}: {e}"
        raise TypeError(msg) from e


def _declared_methods(shape: type) -> dict[str, MethodRef]:
    methods: dict[str, MethodRef] = {}
    for klass in shape.__mro__:
        if klass is object or klass is BaseModel:
            continue
        for name, member in vars(klass).items():
            if name.startswith("_"):
                continue
            if isinstance(member, (staticmethod, classmethod)):
                member = member.__func__
            if not inspect.isfunction(member):
                continue
            methods.setdefault(normalize_name(name), MethodRef(name=name, function=member))
    return methods
