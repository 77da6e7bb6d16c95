"""Tests for dataset profiling."""

import pytest

from relinfer.analysis.profiling import DatasetProfiler
from relinfer.core.cache import SchemaCache
from relinfer.core.errors import AnalysisError
from relinfer.core.models import FieldShape, IssueKind
from relinfer.core.progress import CallbackProgressSink, ProgressStage
from relinfer.sources import DuckDBDataSource


class CountingSource(DuckDBDataSource):
    """Counts profiling queries and fails on chosen columns."""

    def __init__(self, conn, fail_on=()):
        super().__init__(conn)
        self.calls = 0
        self.fail_on = set(fail_on)

    def profile_column(self, table, column):
        self.calls += 1
        if (table, column) in self.fail_on:
            raise AnalysisError(f"profile of {table}.{column} failed", table, column)
        return super().profile_column(table, column)


class TestDatasetProfiler:
    """Tests for snapshot building."""

    def test_snapshot(self, scenario_source):
        """Every table and column is profiled."""
        profiler = DatasetProfiler(scenario_source)
        snapshot = {t.name: t for t in profiler.profile(scenario_source.list_tables())}

        assert set(snapshot) == {"customers", "orders", "posts", "tags"}
        tags = snapshot["posts"].get_column("tags")
        assert tags.shape == FieldShape.ARRAY
        assert tags.max_elements_per_record == 5
        assert tags.avg_elements_per_record == pytest.approx(2.3)
        assert snapshot["orders"].get_column("coupon_ref").non_null_count == 0
        assert snapshot["orders"].key_column == "id"
        assert profiler.issues == []

    def test_failed_column_is_kept_with_error(self, scenario_conn):
        """A failing column is recorded; the rest of the table is still profiled."""
        source = CountingSource(scenario_conn, fail_on={("orders", "amount")})
        profiler = DatasetProfiler(source)
        snapshot = {t.name: t for t in profiler.profile(source.list_tables())}

        amount = snapshot["orders"].get_column("amount")
        assert amount.profile_error == "profile of orders.amount failed"
        assert snapshot["orders"].get_column("customer_ref").non_null_count == 80

        (issue,) = profiler.issues
        assert issue.kind == IssueKind.ANALYSIS_ERROR
        assert (issue.table, issue.column) == ("orders", "amount")

    def test_cache_avoids_repeat_queries(self, scenario_conn):
        """A shared cache serves profiles on the second run."""
        source = CountingSource(scenario_conn)
        cache = SchemaCache()
        tables = source.list_tables()

        DatasetProfiler(source, cache).profile(tables)
        first = source.calls
        DatasetProfiler(source, cache).profile(tables)

        assert first == sum(len(t.columns) for t in tables)
        assert source.calls == first

    def test_progress_per_table(self, scenario_source):
        events = []
        profiler = DatasetProfiler(scenario_source, progress=CallbackProgressSink(events.append))
        profiler.profile(scenario_source.list_tables())

        assert [e.stage for e in events] == [ProgressStage.PROFILING] * 4
        assert {e.table_name for e in events} == {"customers", "orders", "posts", "tags"}
        assert events[0].percent_complete == 0.0
