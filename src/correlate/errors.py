"""Error taxonomy for the correlate mapping engine.

Every failure raised by the library derives from CorrelateError and also
from the closest builtin exception, so callers can catch either the
library-specific type or the generic one (LookupError, TypeError, ValueError).
"""

from __future__ import annotations

from typing import Any


class CorrelateError(Exception):
    """Base exception for all correlate failures."""


class UnknownField(CorrelateError, LookupError):
    """A field name or dotted path is absent from a shape's descriptor."""

    def __init__(self, shape: type, name: str) -> None:
        self.shape = shape
        self.name = name
        super().__init__(f"{shape.__qualname__} has no field '{name}'")


class UnknownMethod(CorrelateError, LookupError):
    """A method name is absent from a shape's descriptor."""

    def __init__(self, shape: type, name: str) -> None:
        self.shape = shape
        self.name = name
        super().__init__(f"{shape.__qualname__} has no method '{name}'")


class TypeMismatch(CorrelateError, TypeError):
    """A value cannot be viewed or coerced as the requested kind."""

    def __init__(self, expected: Any, value: Any, detail: str | None = None) -> None:
        self.expected = expected
        self.value = value
        msg = f"Cannot use {type(value).__name__} value {value!r} as {_kind_name(expected)}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class FormatError(CorrelateError, ValueError):
    """Scalar text could not be parsed into a primitive kind."""

    def __init__(self, kind: Any, text: str, detail: str | None = None) -> None:
        self.kind = kind
        self.text = text
        msg = f"Cannot parse {text!r} as {_kind_name(kind)}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class DeserializationError(CorrelateError, ValueError):
    """Structured (JSON) text could not be decoded into a compound kind."""


class SerializationError(CorrelateError, ValueError):
    """A compound value could not be encoded, e.g. on a reference cycle."""


class ValidationError(CorrelateError, ValueError):
    """A field whose tag forbids empty values resolved to an empty value."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Field '{path}' resolved to an empty value but does not allow empty")


class Cancelled(CorrelateError):
    """An async value-getter mapping was cancelled before completion."""


def _kind_name(kind: Any) -> str:
    return getattr(kind, "__qualname__", None) or repr(kind)
