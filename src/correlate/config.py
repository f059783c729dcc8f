"""Process-wide structured codec settings, read from the environment.

Settings are read once per process by get_settings(); afterwards they are
immutable. Tests and embedding applications that need different behaviour
construct CodecSettings directly and inject it into a StructuredCodec.

Environment variables:
    CORRELATE_JSON_DATE_FORMAT               strftime pattern (default: ISO 8601)
    CORRELATE_JSON_PRETTY_PRINT              true/false (default: false)
    CORRELATE_JSON_IGNORE_NULL_VALUES        true/false (default: false)
    CORRELATE_JSON_REFERENCE_LOOP_HANDLING   error | ignore | serialize (default: serialize)
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReferenceLoopHandling(StrEnum):
    """What the structured codec does when an object graph refers back to itself.

    ERROR: Raise SerializationError.
    IGNORE: Drop the repeating reference from the output.
    SERIALIZE: Serialize anyway; a true cycle still cannot be written, so
        this ends in SerializationError as well.
    """

    ERROR = "error"
    IGNORE = "ignore"
    SERIALIZE = "serialize"


class CodecSettings(BaseSettings):
    """Formatting options for compound-kind text conversion."""

    model_config = SettingsConfigDict(
        env_prefix="CORRELATE_JSON_",
        case_sensitive=False,
        frozen=True,
    )

    date_format: str | None = None
    pretty_print: bool = False
    ignore_null_values: bool = False
    reference_loop_handling: ReferenceLoopHandling = ReferenceLoopHandling.SERIALIZE

    @field_validator("date_format", mode="before")
    @classmethod
    def blank_date_format_is_iso(cls, v: object) -> object:
        """An empty or whitespace-only format means ISO 8601."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("reference_loop_handling", mode="before")
    @classmethod
    def lower_loop_handling(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower() or ReferenceLoopHandling.SERIALIZE
        return v


@lru_cache
def get_settings() -> CodecSettings:
    return CodecSettings()
