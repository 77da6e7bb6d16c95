"""Base models and types used across all modules.

This module contains the fundamental types that don't belong to any specific
analysis stage.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Result type for operations that can fail.

    Use this instead of exceptions for expected failures.
    Exceptions are reserved for fatal or programming errors.
    """

    success: bool
    value: T | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, value: T, warnings: list[str] | None = None) -> Result[T]:
        """Create a successful result."""
        return cls(success=True, value=value, warnings=warnings or [])

    @classmethod
    def fail(cls, error: str) -> Result[T]:
        """Create a failed result."""
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Get the value or raise if failed."""
        if not self.success:
            raise ValueError(f"Result failed: {self.error}")
        assert self.value is not None
        return self.value

    def map(self, fn: Callable[[T], Any]) -> Result[Any]:
        """Transform the value if successful."""
        if self.success and self.value is not None:
            return Result.ok(fn(self.value), self.warnings)
        return self


class ReportModel(BaseModel):
    """Base for models that end up in the JSON report.

    Fields are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump with camelCase keys and JSON-native values."""
        return self.model_dump(mode="json", by_alias=True)


# === Enums ===


class FieldShape(str, Enum):
    """Physical shape of a column holding identifiers."""

    SCALAR = "scalar"
    ARRAY = "array-of-identifiers"


class RelationshipType(str, Enum):
    """Relationship type, named from the source table's point of view."""

    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"

    @property
    def source_links_many(self) -> bool:
        """Whether one source record links to many target records."""
        return self in (RelationshipType.ONE_TO_MANY, RelationshipType.MANY_TO_MANY)

    @property
    def target_referenced_many(self) -> bool:
        """Whether one target record is referenced by many source records."""
        return self in (RelationshipType.MANY_TO_ONE, RelationshipType.MANY_TO_MANY)

    @classmethod
    def from_sides(cls, source_many: bool, target_many: bool) -> RelationshipType:
        """Build the type from the one/many family of each side."""
        if source_many and target_many:
            return cls.MANY_TO_MANY
        if source_many:
            return cls.ONE_TO_MANY
        if target_many:
            return cls.MANY_TO_ONE
        return cls.ONE_TO_ONE


class EvidenceOrigin(str, Enum):
    """Where a candidate's target table came from."""

    SCHEMA = "schema"
    NAMING = "naming"
    BOTH = "both"
    DATA = "data"  # Resolved by scanning identifier columns


class ConfidenceBucket(str, Enum):
    """Report bucket for a proposal's confidence."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IssueKind(str, Enum):
    """Kind of recovered failure recorded on a report."""

    SCHEMA_RESOLUTION_ERROR = "SchemaResolutionError"
    ANALYSIS_ERROR = "AnalysisError"


class AnalysisIssue(ReportModel):
    """A recovered failure, kept on the report for transparency."""

    kind: IssueKind
    message: str
    table: str | None = None
    column: str | None = None
