"""Referential integrity - overlap between a column's values and a target's keys.

integrity% = matched / distinct_source_values

A candidate is never a relationship unless it has at least
min_distinct_source_values distinct values and min_matched_values matches.
"""

from __future__ import annotations

from relinfer.core.config import InferenceConfig
from relinfer.core.errors import AnalysisError
from relinfer.core.logging import get_logger
from relinfer.core.models import Result
from relinfer.sources.base import DataSource
from relinfer.sources.models import OverlapResult, Table

logger = get_logger(__name__)


class ReferentialIntegrityAnalyzer:
    """Measures value overlap through the DataSource."""

    def __init__(self, source: DataSource, config: InferenceConfig | None = None):
        self.source = source
        self.config = config or InferenceConfig()

    def measure(self, table: str, column: str, target: Table) -> Result[OverlapResult]:
        """Compute the overlap of table.column with the target's key column.

        Query failures are returned as a failed Result, never raised.
        """
        if target.key_column is None:
            return Result.fail(f"Target table {target.name} has no identifier column")
        try:
            overlap = self.source.compute_overlap(table, column, target.name, target.key_column)
        except AnalysisError as e:
            logger.warning(
                "integrity_query_failed", table=table, column=column, target=target.name, error=str(e)
            )
            return Result.fail(str(e))
        return Result.ok(overlap)

    def passes_sample_guard(self, overlap: OverlapResult) -> bool:
        return (
            overlap.distinct_source_values >= self.config.min_distinct_source_values
            and overlap.matched >= self.config.min_matched_values
        )

    def passes_integrity_threshold(self, overlap: OverlapResult) -> bool:
        return overlap.integrity_percent >= self.config.min_integrity_percent

    def discover_target(
        self, table: str, column: str, tables: list[Table]
    ) -> Result[tuple[Table, OverlapResult] | None]:
        """Find the table whose keys best cover the column's values.

        Every table with an identifier column is tested, except the source
        table unless self references are allowed. The table with the most
        matches wins; ties go to the first by name.

        Returns:
            Ok((table, overlap)) for the best match, Ok(None) when no table
            matches any value, Fail when every lookup failed
        """
        best: tuple[Table, OverlapResult] | None = None
        errors: list[str] = []
        tested = 0

        for target in sorted(tables, key=lambda t: t.name):
            if target.key_column is None:
                continue
            if target.name == table and not self.config.allow_self_references:
                continue
            tested += 1
            result = self.measure(table, column, target)
            if not result.success:
                errors.append(result.error or "unknown error")
                continue
            overlap = result.unwrap()
            if overlap.matched > 0 and (best is None or overlap.matched > best[1].matched):
                best = (target, overlap)

        if best is None and tested > 0 and len(errors) == tested:
            return Result.fail(errors[0])
        return Result.ok(best)
