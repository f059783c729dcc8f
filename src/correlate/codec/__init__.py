"""Scalar and structured text codec.

Re-exports the codec for convenient imports:
    from correlate.codec import StructuredCodec, from_string, to_string
"""

from __future__ import annotations

from typing import Any

from correlate.codec.scalar import format_scalar, parse_scalar
from correlate.codec.structured import StructuredCodec, get_default_codec


def from_string(annotation: Any, text: str | None) -> Any:
    """Parse text with the process-wide codec. See StructuredCodec.from_string."""
    return get_default_codec().from_string(annotation, text)


def to_string(annotation: Any, value: Any) -> str | None:
    """Format a value with the process-wide codec. See StructuredCodec.to_string."""
    return get_default_codec().to_string(annotation, value)


__all__ = [
    "StructuredCodec",
    "get_default_codec",
    "from_string",
    "to_string",
    "parse_scalar",
    "format_scalar",
]
