"""Interfaces the inference engine consumes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from relinfer.sources.models import ColumnProfile, LinkDescriptor, OverlapResult, TableInfo


class DataSource(ABC):
    """Read-only access to a dataset.

    Implementations must aggregate on the server side and must be safe to call
    from several worker threads at once.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable name of the dataset, used as cache key prefix."""
        pass

    @abstractmethod
    def list_tables(self) -> list[TableInfo]:
        """List every table with its row count and columns.

        Raises:
            TableEnumerationError: If the tables cannot be listed
        """
        pass

    @abstractmethod
    def profile_column(self, table: str, column: str) -> ColumnProfile:
        """Compute statistics for one column with a single aggregate query.

        Raises:
            AnalysisError: If the query fails
        """
        pass

    @abstractmethod
    def compute_overlap(
        self, table: str, column: str, target_table: str, target_key_column: str
    ) -> OverlapResult:
        """Count distinct non-null values of a column and how many exist in the target keys.

        Raises:
            AnalysisError: If the query fails
        """
        pass

    def max_references_per_value(
        self, table: str, column: str, target_table: str, target_key_column: str
    ) -> int | None:
        """Max number of rows referencing a single target key.

        Values that are not keys of the target table are not counted.

        Returns None when the source cannot measure it.
        """
        return None

    def sample_values(self, table: str, column: str, limit: int = 10) -> list[str]:
        """Distinct non-null sample of a column's values (flattened for arrays)."""
        return []


@runtime_checkable
class SchemaMetadataSource(Protocol):
    """Optional source of declared link metadata."""

    def list_declared_links(self) -> list[LinkDescriptor]: ...

    def table_ids(self) -> dict[str, str]:
        """Map of source-system table id -> table name."""
        ...
