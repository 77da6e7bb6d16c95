"""Dataset profiling.

Builds an immutable snapshot (Table / Column) of the dataset by running one
aggregate query per column through the DataSource.
"""

from __future__ import annotations

import time

from relinfer.core.cache import SchemaCache
from relinfer.core.errors import AnalysisError
from relinfer.core.logging import get_analysis_metrics, get_logger, increment_cache_hit
from relinfer.core.models import AnalysisIssue, IssueKind
from relinfer.core.progress import NullProgressSink, ProgressEvent, ProgressSink, ProgressStage
from relinfer.sources.base import DataSource
from relinfer.sources.models import Column, ColumnProfile, Table, TableInfo

logger = get_logger(__name__)


class DatasetProfiler:
    """Profiles every column of every table.

    A column whose profiling query fails is kept in the snapshot with
    profile_error set and an AnalysisIssue recorded; the rest of the table is
    still profiled.
    """

    def __init__(
        self,
        source: DataSource,
        cache: SchemaCache | None = None,
        progress: ProgressSink | None = None,
    ):
        self.source = source
        self.cache = cache
        self.progress = progress or NullProgressSink()
        self.issues: list[AnalysisIssue] = []

    def _cached_profile(self, table: str, column: str) -> ColumnProfile:
        if self.cache is None:
            return self.source.profile_column(table, column)
        key = f"{self.source.name}:profile:{table}.{column}"
        profile = self.cache.get(key)
        if profile is not None:
            increment_cache_hit()
            return profile
        profile = self.source.profile_column(table, column)
        self.cache.set(key, profile)
        return profile

    def profile_table(self, table: TableInfo) -> Table:
        """Profile all columns of one table."""
        columns: list[Column] = []
        for info in table.columns:
            try:
                profile = self._cached_profile(table.name, info.name)
            except AnalysisError as e:
                logger.warning("column_profile_failed", table=table.name, column=info.name, error=str(e))
                self.issues.append(
                    AnalysisIssue(
                        kind=IssueKind.ANALYSIS_ERROR,
                        message=str(e),
                        table=table.name,
                        column=info.name,
                    )
                )
                columns.append(
                    Column(
                        name=info.name,
                        data_type=info.data_type,
                        shape=info.shape,
                        nullable=info.nullable,
                        profile_error=str(e),
                    )
                )
                continue

            columns.append(
                Column(
                    name=info.name,
                    data_type=info.data_type,
                    shape=profile.shape,
                    nullable=info.nullable,
                    non_null_count=profile.non_null_count,
                    distinct_count=profile.distinct_count,
                    max_elements_per_record=profile.max_elements_per_record,
                    avg_elements_per_record=profile.avg_elements_per_record,
                )
            )

        metrics = get_analysis_metrics()
        if metrics:
            metrics.increment("tables_profiled")
            metrics.increment("columns_profiled", len(columns))

        return Table(
            name=table.name,
            row_count=table.row_count,
            columns=columns,
            key_column=table.key_column,
            table_id=table.table_id,
        )

    def profile(self, tables: list[TableInfo]) -> list[Table]:
        """Profile every table, reporting progress per table.

        Args:
            tables: Tables as listed by the data source

        Returns:
            Profiled snapshot, in input order
        """
        start = time.perf_counter()
        snapshot: list[Table] = []
        total = len(tables)

        for idx, table in enumerate(tables):
            try:
                self.progress.emit(
                    ProgressEvent(
                        stage=ProgressStage.PROFILING,
                        table_name=table.name,
                        message=f"Profiling {table.name} ({len(table.columns)} columns)",
                        percent_complete=round(100.0 * idx / total, 1) if total else 100.0,
                    )
                )
            except Exception as e:
                logger.warning("progress_sink_failed", stage=ProgressStage.PROFILING.value, error=str(e))
            snapshot.append(self.profile_table(table))

        logger.info(
            "dataset_profiled",
            tables=total,
            columns=sum(len(t.columns) for t in snapshot),
            errors=len(self.issues),
            duration_seconds=round(time.perf_counter() - start, 3),
        )
        return snapshot
