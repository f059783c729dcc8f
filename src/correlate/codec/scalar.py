"""Direct text conversion for primitive kinds.

Parsing goes through pydantic's string validation so the accepted spellings
match what pydantic models accept elsewhere (``"true"``/``"1"``/``"yes"`` for
bool, ISO 8601 for dates and durations, canonical UUIDs, ...). Formatting
produces the spelling that parsing accepts back.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from correlate.errors import FormatError, TypeMismatch


@lru_cache(maxsize=256)
def _cached_adapter(annotation: Any) -> TypeAdapter[Any]:
    return TypeAdapter(annotation)


def type_adapter(annotation: Any) -> TypeAdapter[Any]:
    """Return a (cached where hashable) pydantic TypeAdapter for an annotation."""
    try:
        return _cached_adapter(annotation)
    except TypeError:
        return TypeAdapter(annotation)


def parse_scalar(kind: type, text: str, date_format: str | None = None) -> Any:
    """Parse non-blank text into a primitive kind.

    Args:
        kind: A primitive kind (see correlate.reflection.kinds.PRIMITIVE_KINDS) or Enum.
        text: The text to parse. ``str`` keeps it verbatim; other kinds strip it.
        date_format: Optional strftime pattern tried first for datetime and date.

    Returns:
        The parsed value.

    Raises:
        FormatError: If the text is not a valid spelling of the kind.
    """
    if kind is str:
        return text
    if kind is bytes:
        return text.encode("utf-8")

    stripped = text.strip()
    if issubclass(kind, Enum):
        return _parse_enum(kind, stripped)

    if date_format and kind in (datetime, date):
        try:
            parsed = datetime.strptime(stripped, date_format)
        except ValueError:
            pass  # fall back to ISO 8601
        else:
            return parsed.date() if kind is date else parsed

    try:
        return type_adapter(kind).validate_strings(stripped)
    except PydanticValidationError as e:
        raise FormatError(kind, text, e.errors()[0]["msg"]) from e


def format_scalar(kind: type, value: Any, date_format: str | None = None) -> str:
    """Format a primitive value as text that parse_scalar() reads back.

    Raises:
        TypeMismatch: If the value cannot be viewed as the kind.
    """
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        try:
            value = type_adapter(kind).validate_python(value)
        except PydanticValidationError as e:
            raise TypeMismatch(kind, value, e.errors()[0]["msg"]) from e

    if kind is str:
        return value
    if kind is bool:
        return "true" if value else "false"
    if issubclass(kind, Enum):
        return str(value.value)
    if kind is bytes:
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TypeMismatch(kind, value, "bytes are not valid UTF-8") from e
    if date_format and kind in (datetime, date):
        return value.strftime(date_format)
    if kind in (int, float):
        return repr(value)
    return str(to_jsonable_python(value))


def _parse_enum(kind: type[Enum], text: str) -> Enum:
    for member in kind:
        if str(member.value) == text:
            return member
    lowered = text.lower()
    for member in kind:
        if member.name.lower() == lowered:
            return member
    raise FormatError(kind, text, f"expected one of {[str(m.value) for m in kind]}")
