"""Object-to-object mapping engine.

Populates every top-level field of a target shape from the best matching
field of a source value. For each target field, in declared order, the first
rule that matches wins:

1. The target field's FROM tag names a source path that exists.
2. A source field's TO tag names the target field.
3. A source field has the same (case-insensitive) name, preferring an exact
   path match over a nested leaf of the same name.
4. Nothing matched: the field keeps its declared default or zero value.

Compound target fields are populated by running the same algorithm one
level down, either from the matched nested source value or, when nothing
matched, from the whole source so that nested FROM tags can still reach
source paths.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Iterator, Sized
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, TypeVar

from loguru import logger

from correlate.codec.structured import StructuredCodec, get_default_codec
from correlate.errors import Cancelled, TypeMismatch, ValidationError
from correlate.mapping.report import MappingReport
from correlate.metadata.tags import (
    CorrelationTag,
    Direction,
    FromField,
    ToField,
    default_counterpart,
    strip_annotated,
)
from correlate.reflection.cache import DescriptorCache, get_default_cache
from correlate.reflection.construct import zero_value
from correlate.reflection.descriptor import FieldRef, FlattenedField, normalize_name
from correlate.reflection.kinds import is_primitive, is_shape, unwrap_nullable

T = TypeVar("T")

ValueGetter = Callable[[CorrelationTag, Any, Any], Any]
AsyncValueGetter = Callable[[CorrelationTag, Any, Any], Awaitable[Any]]


@dataclass
class _Run:
    """Per-call resolution state; discarded when the call returns."""

    from_tag: type[CorrelationTag]
    to_tag: type[CorrelationTag]
    resolved: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)


class Mapper:
    """Maps source values onto target shapes using correlation tags.

    Usage::

        mapper = Mapper()
        dto = mapper.map(person, PersonDto)

        report = mapper.map_report(person, PersonDto)
        if report.unresolved:
            ...

        settings = mapper.map_with_value_getter(
            AppSettings, lambda tag, kind, current: os.environ.get(tag.name)
        )
    """

    def __init__(
        self,
        cache: DescriptorCache | None = None,
        codec: StructuredCodec | None = None,
        *,
        enforce_allow_empty: bool = True,
        strict: bool = False,
    ) -> None:
        """Initialize the mapper with its collaborators.

        Args:
            cache: Descriptor cache; defaults to the process-wide cache.
            codec: Codec used to coerce values across the text boundary;
                defaults to the process-wide codec.
            enforce_allow_empty: Raise ValidationError when a field whose
                controlling tag has ``allow_empty=False`` stays unresolved or
                resolves to an empty or zero value.
                False restores the historical silent behaviour.
            strict: Log a warning for every unresolved target field.
        """
        self._cache = cache if cache is not None else get_default_cache()
        self._codec = codec if codec is not None else get_default_codec()
        self._enforce_allow_empty = enforce_allow_empty
        self._strict = strict

    @property
    def cache(self) -> DescriptorCache:
        return self._cache

    def map(
        self,
        source: Any,
        target_type: type[T] | None = None,
        *,
        source_type: type | None = None,
        from_tag: type[CorrelationTag] = FromField,
        to_tag: type[CorrelationTag] = ToField,
    ) -> T | None:
        """Map a source value onto a new instance of the target shape.

        Args:
            source: The value to read from.
            target_type: Shape to populate. Defaults to the source shape's
                ``MapsTo`` counterpart.
            source_type: Shape to describe the source as; defaults to its type.
            from_tag: Tag type read from target fields (rule 1).
            to_tag: Tag type read from source fields (rule 2).

        Returns:
            The populated target, or None if no target shape could be resolved.

        Raises:
            TypeMismatch: A resolved value cannot be coerced to its field.
            ValidationError: A field that forbids empty values resolved empty.
            UnknownField: A tag-driven path could not be written.
        """
        report = self.map_report(
            source,
            target_type,
            source_type=source_type,
            from_tag=from_tag,
            to_tag=to_tag,
        )
        if report is None:
            return None
        if self._strict:
            for path in report.unresolved:
                logger.warning(
                    "Unresolved field {target}.{path} left at its default",
                    target=report.target_type.__qualname__,
                    path=path,
                )
        return report.target

    def map_report(
        self,
        source: Any,
        target_type: type[T] | None = None,
        *,
        source_type: type | None = None,
        from_tag: type[CorrelationTag] = FromField,
        to_tag: type[CorrelationTag] = ToField,
    ) -> MappingReport | None:
        """Like map(), but also report which target paths were resolved."""
        if source_type is None:
            if source is None:
                logger.warning("Cannot map None without an explicit source_type")
                return None
            source_type = type(source)
        if target_type is None:
            target_type = default_counterpart(source_type, Direction.TO)
            if target_type is None:
                logger.warning(
                    "No target type given and {source} declares no MapsTo counterpart",
                    source=source_type.__qualname__,
                )
                return None

        run = _Run(from_tag=from_tag, to_tag=to_tag)
        target, _ = self._populate(
            source, source_type, target_type, run, "", frozenset({target_type})
        )
        logger.debug(
            "Mapped {source} -> {target} | resolved={n_resolved} unresolved={n_unresolved}",
            source=source_type.__qualname__,
            target=target_type.__qualname__,
            n_resolved=len(run.resolved),
            n_unresolved=len(run.unresolved),
        )
        return MappingReport(
            target=target,
            source_type=source_type,
            target_type=target_type,
            resolved=run.resolved,
            unresolved=run.unresolved,
        )

    def map_list(
        self,
        sources: Iterable[Any],
        target_type: type[T] | None = None,
        **kwargs: Any,
    ) -> list[T | None]:
        """Map each source value in order. Keyword arguments are passed to map()."""
        return [self.map(source, target_type, **kwargs) for source in sources]

    def map_with_value_getter(
        self,
        target_type: type[T],
        callback: ValueGetter,
        tag_type: type[CorrelationTag] = FromField,
        set_after_callback: bool = True,
    ) -> T:
        """Populate a target by asking a callback for every tagged field.

        Fields are visited in declared order. For each field carrying a
        ``tag_type`` tag the callback receives ``(tag, declared_type,
        current_value)`` and its result is assigned (with coercion) when
        ``set_after_callback`` is True. Errors raised by the callback propagate.
        """
        target = self._cache.instantiate(target_type)
        for ref, tag in self._tagged_fields(target_type, tag_type):
            current = getattr(target, ref.name, None)
            try:
                value = callback(tag, strip_annotated(ref.annotation), current)
            except Exception:
                logger.error(
                    "Value getter failed for {target}.{name} (tag {tag})",
                    target=target_type.__qualname__,
                    name=ref.name,
                    tag=tag.name,
                )
                raise
            if set_after_callback:
                self._assign(target, ref, tag, ref.normalized_name, value)
        return target

    async def map_with_value_getter_async(
        self,
        target_type: type[T],
        callback: AsyncValueGetter,
        tag_type: type[CorrelationTag] = FromField,
        set_after_callback: bool = True,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> T:
        """Async form of map_with_value_getter().

        Each callback is awaited before the next field is visited, so
        callbacks never run concurrently within one call.

        Raises:
            Cancelled: If ``cancel_event`` is set before or during a callback.
                The partially populated target is discarded.
        """
        target = self._cache.instantiate(target_type)
        for ref, tag in self._tagged_fields(target_type, tag_type):
            _raise_if_cancelled(cancel_event, target_type, ref)
            current = getattr(target, ref.name, None)
            try:
                value = await callback(tag, strip_annotated(ref.annotation), current)
            except Exception:
                logger.error(
                    "Async value getter failed for {target}.{name} (tag {tag})",
                    target=target_type.__qualname__,
                    name=ref.name,
                    tag=tag.name,
                )
                raise
            _raise_if_cancelled(cancel_event, target_type, ref)
            if set_after_callback:
                self._assign(target, ref, tag, ref.normalized_name, value)
        return target

    def _populate(
        self,
        source: Any,
        source_type: type,
        target_type: type,
        run: _Run,
        prefix: str,
        stack: frozenset[type],
    ) -> tuple[Any, int]:
        target = self._cache.instantiate(target_type)
        index = self._cache.flatten(source_type, include_branches=True)
        hits = 0

        for ref in self._cache.describe(target_type).fields.values():
            path = f"{prefix}.{ref.normalized_name}" if prefix else ref.normalized_name
            controlling = ref.tag(run.from_tag)
            entry, source_tag = _match(ref, path, index, run)
            if controlling is None:
                controlling = source_tag

            if entry is not None:
                value = _read(source, entry.chain)
                nested_run = None
                if (
                    ref.is_compound
                    and value is not None
                    and is_shape(type(value))
                    and not isinstance(value, ref.kind)
                    and ref.kind not in stack
                ):
                    nested_run = _Run(from_tag=run.from_tag, to_tag=run.to_tag)
                    value, _ = self._populate(
                        value, type(value), ref.kind, nested_run, path, stack | {ref.kind}
                    )
                self._assign(target, ref, controlling, path, value)
                if nested_run is None:
                    run.resolved.append(path)
                else:
                    run.resolved.extend(nested_run.resolved)
                    run.unresolved.extend(nested_run.unresolved)
                hits += 1
                continue

            if ref.is_compound and ref.kind not in stack:
                nested_run = _Run(from_tag=run.from_tag, to_tag=run.to_tag)
                nested, nested_hits = self._populate(
                    source, source_type, ref.kind, nested_run, path, stack | {ref.kind}
                )
                if nested_hits:
                    self._assign(target, ref, controlling, path, nested)
                    run.resolved.extend(nested_run.resolved)
                    run.unresolved.extend(nested_run.unresolved)
                    hits += 1
                    continue

            self._require_resolved(controlling, path)
            run.unresolved.append(path)

        return target, hits

    def _assign(
        self,
        target: Any,
        ref: FieldRef,
        tag: CorrelationTag | None,
        path: str,
        value: Any,
    ) -> None:
        self._cache.set(target, ref.name, value, codec=self._codec)
        self._check_empty(tag, path, getattr(target, ref.name, None), ref.annotation)

    def _check_empty(
        self, tag: CorrelationTag | None, path: str, value: Any, annotation: Any
    ) -> None:
        if not self._enforce_allow_empty or tag is None or tag.allow_empty:
            return
        if is_empty(value, annotation):
            raise ValidationError(path)

    def _require_resolved(self, tag: CorrelationTag | None, path: str) -> None:
        # a field left at its default never satisfies allow_empty=False, whatever its kind
        if self._enforce_allow_empty and tag is not None and not tag.allow_empty:
            raise ValidationError(path)

    def _tagged_fields(
        self, target_type: type, tag_type: type[CorrelationTag]
    ) -> Iterator[tuple[FieldRef, CorrelationTag]]:
        for ref in self._cache.describe(target_type).fields.values():
            tag = ref.tag(tag_type)
            if tag is not None:
                yield ref, tag


def is_empty(value: Any, annotation: Any = None) -> bool:
    """True for None, a blank string or an empty collection.

    With an ``annotation``, the zero value of its kind also counts as empty:
    ``0`` for int, ``False`` for bool, a scratch instance for a model or
    dataclass. Enum members never count, since the first member is a real
    choice rather than a missing one.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Sized) and not is_shape(type(value)):
        return len(value) == 0
    if annotation is None:
        return False
    kind, _ = unwrap_nullable(annotation)
    if isinstance(kind, type) and issubclass(kind, Enum):
        return False
    if not (is_primitive(kind) or is_shape(kind)):
        return False
    try:
        zero = zero_value(kind)
    except TypeMismatch:
        return False
    return type(value) is type(zero) and value == zero


def _match(
    ref: FieldRef,
    path: str,
    index: dict[str, FlattenedField],
    run: _Run,
) -> tuple[FlattenedField | None, CorrelationTag | None]:
    from_tag = ref.tag(run.from_tag)
    if from_tag is not None:
        entry = index.get(normalize_name(from_tag.name))
        if entry is not None:
            return entry, from_tag

    name = ref.normalized_name
    for entry in index.values():
        to_tag = entry.field.tag(run.to_tag)
        if to_tag is not None and normalize_name(to_tag.name) in (name, path):
            return entry, to_tag

    entry = index.get(name)
    if entry is not None:
        return entry, None
    for entry in index.values():
        if entry.field.normalized_name == name:
            return entry, None
    return None, None


def _read(source: Any, chain: tuple[str, ...]) -> Any:
    value = source
    for name in chain:
        if value is None:
            return None
        value = getattr(value, name, None)
    return value


def _raise_if_cancelled(event: asyncio.Event | None, target_type: type, ref: FieldRef) -> None:
    if event is not None and event.is_set():
        logger.info(
            "Mapping of {target} cancelled at field {name}",
            target=target_type.__qualname__,
            name=ref.name,
        )
        raise Cancelled(f"Mapping of {target_type.__qualname__} cancelled at field '{ref.name}'")


@lru_cache
def get_default_mapper() -> Mapper:
    return Mapper(get_default_cache(), get_default_codec())


def map_value(source: Any, target_type: type[T] | None = None, **kwargs: Any) -> T | None:
    """Map with the process-wide Mapper. See Mapper.map."""
    return get_default_mapper().map(source, target_type, **kwargs)


def map_with_value_getter(
    target_type: type[T],
    callback: ValueGetter,
    tag_type: type[CorrelationTag] = FromField,
    set_after_callback: bool = True,
) -> T:
    """Populate with the process-wide Mapper. See Mapper.map_with_value_getter."""
    return get_default_mapper().map_with_value_getter(
        target_type, callback, tag_type, set_after_callback
    )


async def map_with_value_getter_async(
    target_type: type[T],
    callback: AsyncValueGetter,
    tag_type: type[CorrelationTag] = FromField,
    set_after_callback: bool = True,
    *,
    cancel_event: asyncio.Event | None = None,
) -> T:
    """Async populate with the process-wide Mapper. See Mapper.map_with_value_getter_async."""
    return await get_default_mapper().map_with_value_getter_async(
        target_type, callback, tag_type, set_after_callback, cancel_event=cancel_event
    )
