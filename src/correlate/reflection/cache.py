"""Memoized type descriptors and flattened field maps.

DescriptorCache is the one piece of shared mutable state in the library. It
is write-once-per-shape and read-mostly: reads take no lock, and writes use
``dict.setdefault`` so concurrent first use never corrupts the map. Two
callers racing on the same uncached shape may both build a descriptor; the
first one stored is kept and returned to both, and since building is a pure
function of the shape either result is correct.

Usage::

    cache = DescriptorCache()
    paths = cache.flatten(Person)        # {"name": ..., "address.city": ..., ...}
    person = cache.instantiate(Person)
    cache.set(person, "address.city", "NY")
    cache.get(person, "Address.City")    # "NY"
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Any

from loguru import logger

from correlate.errors import TypeMismatch, UnknownField
from correlate.reflection.construct import instantiate
from correlate.reflection.descriptor import (
    FieldRef,
    FlattenedField,
    TypeDescriptor,
    build_descriptor,
    normalize_name,
)
from correlate.reflection.kinds import is_shape

if TYPE_CHECKING:
    from correlate.codec.structured import StructuredCodec

_FlatKey = tuple[type, str, bool]


class DescriptorCache:
    """Process- or test-scoped store of TypeDescriptors and flattened maps."""

    def __init__(self) -> None:
        self._descriptors: dict[type, TypeDescriptor] = {}
        self._flattened: dict[_FlatKey, dict[str, FlattenedField]] = {}

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, shape: object) -> bool:
        return shape in self._descriptors

    def describe(self, shape: type) -> TypeDescriptor:
        """Return the descriptor for a shape, building it on first use."""
        descriptor = self._descriptors.get(shape)
        if descriptor is not None:
            return descriptor
        built = build_descriptor(shape)
        logger.debug(
            "Described {shape} | fields={n_fields} methods={n_methods}",
            shape=shape.__qualname__,
            n_fields=len(built.fields),
            n_methods=len(built.methods),
        )
        return self._descriptors.setdefault(shape, built)

    def flatten(
        self,
        shape: type,
        separator: str = ".",
        *,
        include_branches: bool = False,
    ) -> dict[str, FlattenedField]:
        """Flatten a shape into normalized dotted paths.

        Compound fields are walked into rather than recorded, so ``Person``
        with ``address: Address`` yields ``address.city`` and ``address.zip``
        but no ``address`` entry. With ``include_branches`` the compound field
        is recorded too, marked ``is_leaf=False``.

        A shape already on the current walk (self- or mutually-referencing
        shapes) is not re-entered: that field is recorded as an opaque leaf.

        Args:
            shape: Root shape to flatten.
            separator: Path separator placed between names.
            include_branches: Also record compound fields under their own path.

        Returns:
            Mapping of path to FlattenedField in field-declaration order.
            Callers must not mutate the returned mapping.
        """
        key = (shape, separator, include_branches)
        flattened = self._flattened.get(key)
        if flattened is not None:
            return flattened
        built: dict[str, FlattenedField] = {}
        self._walk(shape, separator, include_branches, "", (), frozenset({shape}), built)
        return self._flattened.setdefault(key, built)

    def reset(self) -> None:
        """Drop every cached descriptor and flattened map."""
        self._descriptors.clear()
        self._flattened.clear()

    def resolve(self, shape: type, path: str, separator: str = ".") -> FlattenedField:
        """Resolve a field name or dotted path against a shape.

        Raises:
            UnknownField: If no field lives at that path.
        """
        chain: list[str] = []
        current: Any = shape
        *parents, leaf = path.split(separator)
        for name in parents:
            ref = self._direct_field(shape, current, name, path)
            chain.append(ref.name)
            current = ref.kind
        ref = self._direct_field(shape, current, leaf, path)
        chain.append(ref.name)
        return FlattenedField(
            path=normalize_name(path),
            chain=tuple(chain),
            field=ref,
            is_leaf=not ref.is_compound,
        )

    def instantiate(self, shape: type, *args: Any, **kwargs: Any) -> Any:
        return instantiate(shape, *args, **kwargs)

    def get(self, instance: Any, path: str, expected_type: type | None = None) -> Any:
        """Read a field or dotted path from an instance.

        A ``None`` intermediate value short-circuits to ``None``.

        Raises:
            UnknownField: If the path is not declared on the instance's shape.
            TypeMismatch: If ``expected_type`` is given and the value is not an
                instance of it.
        """
        resolved = self.resolve(type(instance), path)
        value = instance
        for name in resolved.chain:
            if value is None:
                break
            value = getattr(value, name, None)
        if expected_type is not None and value is not None and not isinstance(value, expected_type):
            raise TypeMismatch(expected_type, value)
        return value

    def set(
        self,
        instance: Any,
        path: str,
        value: Any,
        *,
        coerce: bool = True,
        codec: StructuredCodec | None = None,
    ) -> None:
        """Write a field or dotted path on an instance.

        Missing intermediate shapes are created with instantiate(). The value
        is coerced to the field's declared kind unless ``coerce`` is False.

        Raises:
            UnknownField: If the path is not declared on the instance's shape.
            TypeMismatch: If the value cannot be coerced to the field's kind.
        """
        resolved = self.resolve(type(instance), path)
        owner = instance
        shape = type(instance)
        for name in resolved.chain[:-1]:
            ref = self.describe(shape).field(name)
            child = getattr(owner, name, None)
            if child is None:
                child = instantiate(ref.kind)
                _assign(owner, name, child)
            owner = child
            shape = type(child)
        if coerce:
            from correlate.codec.structured import get_default_codec

            value = (codec or get_default_codec()).coerce(value, resolved.field.annotation)
        _assign(owner, resolved.chain[-1], value)

    def invoke(self, instance: Any, method_name: str, *args: Any, **kwargs: Any) -> Any:
        """Call a method looked up by case-insensitive name.

        Raises:
            UnknownMethod: If the shape defines no such public method.
        """
        ref = self.describe(type(instance)).method(method_name)
        return getattr(instance, ref.name)(*args, **kwargs)

    def _direct_field(self, root: type, current: Any, name: str, path: str) -> FieldRef:
        if not is_shape(current):
            raise UnknownField(root, path)
        descriptor = self.describe(current)
        if not descriptor.has_field(name):
            raise UnknownField(root, path)
        return descriptor.field(name)

    def _walk(
        self,
        shape: type,
        separator: str,
        include_branches: bool,
        prefix: str,
        chain: tuple[str, ...],
        visiting: frozenset[type],
        out: dict[str, FlattenedField],
    ) -> None:
        for key, ref in self.describe(shape).fields.items():
            path = f"{prefix}{separator}{key}" if prefix else key
            field_chain = (*chain, ref.name)
            kind = ref.kind
            descend = ref.is_compound and kind not in visiting
            if descend and include_branches:
                _record(out, FlattenedField(path, field_chain, ref, is_leaf=False))
            if descend:
                self._walk(
                    kind, separator, include_branches, path, field_chain, visiting | {kind}, out
                )
            else:
                _record(out, FlattenedField(path, field_chain, ref))


def _record(out: dict[str, FlattenedField], entry: FlattenedField) -> None:
    if entry.path in out:
        logger.warning(
            "Flattened path collision on '{path}'; keeping the first declared field",
            path=entry.path,
        )
        return
    out[entry.path] = entry


def _assign(owner: Any, name: str, value: Any) -> None:
    try:
        setattr(owner, name, value)
    except (AttributeError, TypeError, ValueError) as e:
        raise TypeMismatch(type(owner), value, f"cannot assign field '{name}': {e}") from e


@lru_cache
def get_default_cache() -> DescriptorCache:
    return DescriptorCache()
