"""Text conversion for any kind, with JSON for compound kinds.

StructuredCodec is the bidirectional text codec a persistence column
converter binds to: ``to_string`` on write, ``from_string`` on read.
Primitive kinds use direct textual conversion (correlate.codec.scalar);
everything else is a JSON document validated by pydantic.

The codec also owns value coercion for field assignment, since coercion
crosses the text boundary whenever a string meets a non-string field.
"""

from __future__ import annotations

import dataclasses
import inspect
import json
from collections.abc import Iterator, Mapping
from datetime import date, datetime
from functools import lru_cache
from typing import Any, get_args, get_origin

from pydantic import BaseModel, PydanticSchemaGenerationError
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from correlate.codec.scalar import format_scalar, parse_scalar, type_adapter
from correlate.config import CodecSettings, ReferenceLoopHandling, get_settings
from correlate.errors import (
    DeserializationError,
    FormatError,
    SerializationError,
    TypeMismatch,
)
from correlate.metadata.tags import strip_annotated
from correlate.reflection.construct import instantiate, zero_value
from correlate.reflection.descriptor import build_descriptor
from correlate.reflection.kinds import is_primitive, is_shape, is_union, unwrap_nullable

_DROP = object()


class StructuredCodec:
    """Converts values to and from text according to CodecSettings.

    Usage::

        codec = StructuredCodec(CodecSettings(pretty_print=True))
        text = codec.to_string(Address, Address(city="NY", zip="10001"))
        address = codec.from_string(Address, text)
        codec.from_string(int, "42")    # 42
        codec.from_string(int, "")      # 0
    """

    def __init__(self, settings: CodecSettings | None = None) -> None:
        self._settings = settings or get_settings()

    @property
    def settings(self) -> CodecSettings:
        return self._settings

    def from_string(self, annotation: Any, text: str | None) -> Any:
        """Parse text into a value of the given kind.

        Args:
            annotation: Target kind; may be nullable (``X | None``) or Annotated.
            text: Text to parse. ``None`` gives the nullable wrapper's empty
                state (or the zero value of a non-nullable kind).

        Returns:
            The parsed value. Blank text gives the kind's zero value.

        Raises:
            FormatError: Malformed text for a primitive kind.
            DeserializationError: Malformed JSON for a compound kind. Dates
                inside it may use the configured date_format or ISO 8601.
        """
        kind, nullable = unwrap_nullable(annotation)
        if text is None or not text.strip():
            return None if nullable else zero_value(kind)
        date_format = self._settings.date_format
        if is_primitive(kind):
            return parse_scalar(kind, text, date_format)
        if is_shape(kind) and not _is_schema_shape(kind):
            return self._revive(kind, _load_json(kind, text))
        try:
            if date_format:
                data = _parse_dates(kind, _load_json(kind, text), date_format)
                return type_adapter(kind).validate_python(data)
            return type_adapter(kind).validate_json(text)
        except PydanticValidationError as e:
            msg = f"Cannot deserialize into {_name(kind)}: {e.errors()[0]['msg']}"
            raise DeserializationError(msg) from e
        except PydanticSchemaGenerationError as e:
            msg = f"{_name(kind)} has no structured representation"
            raise DeserializationError(msg) from e

    def to_string(self, annotation: Any, value: Any) -> str | None:
        """Format a value as text; ``None`` stays ``None``.

        Compound values are serialized to JSON honoring date_format,
        pretty_print, ignore_null_values and reference_loop_handling.
        Models and dataclasses go through pydantic's serializer, so aliases,
        field serializers and computed fields appear as pydantic writes them.

        Raises:
            TypeMismatch: If a primitive value cannot be viewed as the kind.
            SerializationError: On a reference cycle (unless ignored) or an
                unserializable leaf value.
        """
        if value is None:
            return None
        kind, _ = unwrap_nullable(annotation)
        if is_primitive(kind):
            return format_scalar(kind, value, self._settings.date_format)
        plain = self._to_plain(value, ())
        indent = 2 if self._settings.pretty_print else None
        return json.dumps(plain, indent=indent, ensure_ascii=False)

    def coerce(self, value: Any, annotation: Any) -> Any:
        """Coerce a value to a field annotation for assignment.

        Strings crossing into non-string kinds are parsed with from_string();
        non-strings crossing into ``str`` are formatted with to_string();
        everything else is validated by pydantic (lax mode, from attributes).
        ``None`` into a non-nullable kind gives the kind's zero value.

        Raises:
            TypeMismatch: If the value cannot be coerced.
        """
        kind, nullable = unwrap_nullable(annotation)
        if value is None:
            return None if nullable else zero_value(kind)
        if kind is Any or kind is object:
            return value

        if isinstance(value, str) and kind is not str and not is_union(kind):
            try:
                return self.from_string(kind, value)
            except (FormatError, DeserializationError) as e:
                raise TypeMismatch(annotation, value, str(e)) from e
        if kind is str and not isinstance(value, str):
            try:
                return self.to_string(type(value), value)
            except SerializationError as e:
                raise TypeMismatch(annotation, value, str(e)) from e

        if get_origin(kind) is None and isinstance(kind, type) and isinstance(value, kind):
            if not (kind is int and isinstance(value, bool)):
                return value
        if is_shape(kind) and not _is_schema_shape(kind) and isinstance(value, Mapping):
            return self._revive(kind, value)
        try:
            return type_adapter(strip_annotated(annotation)).validate_python(
                value, from_attributes=True
            )
        except PydanticValidationError as e:
            raise TypeMismatch(annotation, value, e.errors()[0]["msg"]) from e
        except PydanticSchemaGenerationError as e:
            raise TypeMismatch(annotation, value, "kind has no validation schema") from e

    def _revive(self, kind: type, data: Any) -> Any:
        """Build a plain annotated class from decoded JSON data."""
        if not isinstance(data, Mapping):
            msg = f"Expected a JSON object for {kind.__qualname__}, got {type(data).__name__}"
            raise DeserializationError(msg)
        descriptor = build_descriptor(kind)
        instance = instantiate(kind)
        for key, raw in data.items():
            if not descriptor.has_field(key):
                continue
            ref = descriptor.field(key)
            try:
                setattr(instance, ref.name, self.coerce(raw, ref.annotation))
            except TypeMismatch as e:
                msg = f"Cannot deserialize field '{ref.name}' of {kind.__qualname__}: {e}"
                raise DeserializationError(msg) from e
        return instance

    def _to_plain(self, value: Any, stack: tuple[int, ...]) -> Any:
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if self._settings.date_format and isinstance(value, (datetime, date)):
            return value.strftime(self._settings.date_format)
        if is_primitive(type(value)):
            return to_jsonable_python(value)

        if id(value) in stack:
            if self._settings.reference_loop_handling == ReferenceLoopHandling.IGNORE:
                return _DROP
            msg = f"Reference loop detected on {type(value).__qualname__}"
            raise SerializationError(msg)
        stack = (*stack, id(value))

        if _is_schema_shape(type(value)):
            try:
                dumped = type_adapter(type(value)).dump_python(
                    value,
                    by_alias=True,
                    exclude_none=self._settings.ignore_null_values,
                )
            except PydanticSchemaGenerationError:
                items = _schema_items(value)
            except ValueError as e:
                # pydantic refuses cyclic graphs; only IGNORE walks them by hand
                if self._settings.reference_loop_handling != ReferenceLoopHandling.IGNORE:
                    msg = f"Cannot serialize {type(value).__qualname__}: {e}"
                    raise SerializationError(msg) from e
                items = _schema_items(value)
            else:
                return self._to_plain(dumped, stack)
        elif isinstance(value, Mapping):
            items = ((_key(k), v) for k, v in value.items())
        elif isinstance(value, (list, tuple, set, frozenset)):
            plain = (self._to_plain(v, stack) for v in value)
            return [v for v in plain if v is not _DROP]
        elif is_shape(type(value)):
            fields = build_descriptor(type(value)).fields.values()
            items = ((ref.name, getattr(value, ref.name, None)) for ref in fields)
        else:
            try:
                return to_jsonable_python(value)
            except PydanticSerializationError as e:
                msg = f"Cannot serialize {type(value).__qualname__}: {e}"
                raise SerializationError(msg) from e

        out: dict[str, Any] = {}
        for name, item in items:
            plain_item = self._to_plain(item, stack)
            if plain_item is _DROP:
                continue
            if plain_item is None and self._settings.ignore_null_values:
                continue
            out[name] = plain_item
        return out


def _is_schema_shape(kind: type) -> bool:
    """Pydantic can build a validation schema for models and dataclasses."""
    return issubclass(kind, BaseModel) or dataclasses.is_dataclass(kind)


def _schema_items(value: Any) -> Iterator[tuple[str, Any]]:
    """Field items of a model or dataclass under their serialized names."""
    if isinstance(value, BaseModel):
        for name, info in type(value).model_fields.items():
            key = info.serialization_alias or info.alias or name
            yield key, getattr(value, name, None)
        return
    for f in dataclasses.fields(value):
        yield f.name, getattr(value, f.name)


def _load_json(kind: Any, text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON for {_name(kind)}: {e}"
        raise DeserializationError(msg) from e


def _parse_dates(annotation: Any, data: Any, date_format: str) -> Any:
    """Parse date strings written with ``date_format`` at date-typed positions.

    Walks decoded JSON data alongside the annotation it will be validated
    against. Strings that do not match the format are left for pydantic,
    which still accepts ISO 8601.
    """
    kind, _ = unwrap_nullable(annotation)
    if data is None:
        return None
    if kind in (datetime, date):
        if not isinstance(data, str):
            return data
        try:
            return parse_scalar(kind, data, date_format)
        except FormatError:
            return data

    origin = get_origin(kind)
    args = get_args(kind)
    if isinstance(data, list) and origin in (list, set, frozenset, tuple):
        if origin is tuple and args and args[-1] is not Ellipsis:
            parsed = [_parse_dates(a, v, date_format) for a, v in zip(args, data, strict=False)]
            return parsed + data[len(args) :]
        item = args[0] if args else Any
        return [_parse_dates(item, v, date_format) for v in data]
    if isinstance(data, dict) and origin is dict and len(args) == 2:
        return {k: _parse_dates(args[1], v, date_format) for k, v in data.items()}
    if not isinstance(data, dict) or not inspect.isclass(kind):
        return data

    if issubclass(kind, BaseModel):
        fields = {}
        for name, info in kind.model_fields.items():
            for key in {name, info.alias, info.serialization_alias} - {None}:
                fields[key] = info.annotation
    elif is_shape(kind):
        fields = {ref.name: ref.annotation for ref in build_descriptor(kind).fields.values()}
    else:
        return data
    return {
        k: _parse_dates(fields[k], v, date_format) if k in fields else v for k, v in data.items()
    }


def _key(key: Any) -> str:
    return key if isinstance(key, str) else str(to_jsonable_python(key))


def _name(kind: Any) -> str:
    return getattr(kind, "__qualname__", None) or repr(kind)


@lru_cache
def get_default_codec() -> StructuredCodec:
    return StructuredCodec(get_settings())
