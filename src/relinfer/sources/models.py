"""Data structures exchanged with data sources."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from relinfer.core.models import FieldShape, RelationshipType, ReportModel


@dataclass(frozen=True)
class QueryResult:
    """Uniform result of a data source query.

    Rows are always tuples in column order, whatever the backing store returns.
    """

    columns: list[str]
    rows: list[tuple[Any, ...]] = field(default_factory=list)

    def first(self) -> tuple[Any, ...] | None:
        return self.rows[0] if self.rows else None

    def scalar(self, default: Any = None) -> Any:
        """First column of the first row, or default when there are no rows."""
        row = self.first()
        if row is None or row[0] is None:
            return default
        return row[0]

    def column(self, name: str) -> list[Any]:
        idx = self.columns.index(name)
        return [row[idx] for row in self.rows]

    def as_dicts(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row, strict=True)) for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        return iter(self.rows)


class ColumnInfo(BaseModel):
    """Column as listed by the data source, before profiling."""

    model_config = ConfigDict(frozen=True)

    name: str
    data_type: str
    shape: FieldShape = FieldShape.SCALAR
    nullable: bool = True


class TableInfo(BaseModel):
    """Table as listed by the data source, before profiling."""

    model_config = ConfigDict(frozen=True)

    name: str
    row_count: int
    columns: list[ColumnInfo] = Field(default_factory=list)
    key_column: str | None = None  # Identifier column, if any
    table_id: str | None = None  # Source-system id (e.g. "tblXXXX")

    def get_column(self, name: str) -> ColumnInfo | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None


class ColumnProfile(BaseModel):
    """Statistics for one column.

    For array columns, distinct_count is over the flattened elements and
    non_null_count counts rows with at least one element.
    """

    model_config = ConfigDict(frozen=True)

    table: str
    column: str
    shape: FieldShape
    total_rows: int
    non_null_count: int
    distinct_count: int
    max_elements_per_record: int
    avg_elements_per_record: float


class Column(ReportModel):
    """Profiled column in a dataset snapshot."""

    name: str
    data_type: str
    shape: FieldShape
    nullable: bool
    non_null_count: int = 0
    distinct_count: int = 0
    max_elements_per_record: int = 0
    avg_elements_per_record: float = 0.0
    profile_error: str | None = None


class Table(ReportModel):
    """Immutable snapshot of one profiled table."""

    name: str
    row_count: int
    columns: list[Column] = Field(default_factory=list)
    key_column: str | None = None
    table_id: str | None = None

    def get_column(self, name: str) -> Column | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None


class OverlapResult(BaseModel):
    """Overlap between a column's distinct values and a target's key set."""

    model_config = ConfigDict(frozen=True)

    distinct_source_values: int
    matched: int

    @property
    def integrity_percent(self) -> float:
        if self.distinct_source_values == 0:
            return 0.0
        return 100.0 * self.matched / self.distinct_source_values


class LinkDescriptor(ReportModel):
    """A link declared by the source system's schema.

    relationship_type is the declared type when the source states one.
    """

    source_table: str
    source_field: str
    target_table_id: str
    is_symmetric: bool = False
    has_inverse_field: bool = False
    is_required: bool = False
    prefers_single_record: bool = False
    relationship_type: RelationshipType | None = None

    @property
    def declared_type(self) -> RelationshipType:
        if self.relationship_type is not None:
            return self.relationship_type
        if self.prefers_single_record:
            return RelationshipType.MANY_TO_ONE
        return RelationshipType.ONE_TO_MANY
