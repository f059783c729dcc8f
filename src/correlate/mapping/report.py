"""Result model for a mapping run that reports field resolution."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MappingReport(BaseModel):
    """A populated target plus the paths that were and were not resolved.

    Unresolved fields keep their declared default (or zero value). That is
    not an error, but silent defaulting hides integration bugs, so strict
    callers inspect ``unresolved`` or enable strict mode on the Mapper.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    target: Any = Field(..., description="The populated target instance")
    source_type: type = Field(..., description="Shape the values were read from")
    target_type: type = Field(..., description="Shape that was populated")
    resolved: list[str] = Field(
        default_factory=list, description="Normalized target paths that found a source value"
    )
    unresolved: list[str] = Field(
        default_factory=list,
        description="Normalized target paths left at their default value",
    )

    @property
    def complete(self) -> bool:
        """True when every target field found a source value."""
        return not self.unresolved
