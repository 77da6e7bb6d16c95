"""Tests for analysis metrics and log context."""

import contextvars
from concurrent.futures import ThreadPoolExecutor

from relinfer.core.logging import (
    end_analysis_metrics,
    get_analysis_metrics,
    get_logger,
    increment_cache_hit,
    increment_db_query,
    log_context,
    record_operation_timing,
    start_analysis_metrics,
)


class TestAnalysisMetrics:
    """Tests for per-run metrics."""

    def test_lifecycle(self):
        metrics = start_analysis_metrics("run-1")
        assert get_analysis_metrics() is metrics

        increment_db_query()
        increment_cache_hit()
        record_operation_timing("db_query", 0.25)
        record_operation_timing("db_query", 0.25)

        ended = end_analysis_metrics()
        assert ended is metrics
        assert get_analysis_metrics() is None
        assert ended.end_time is not None

        data = ended.to_dict()
        assert data["analysis_id"] == "run-1"
        assert data["db_queries"] == 1
        assert data["cache_hits"] == 1
        assert data["timings"] == {"db_query": 0.5}
        assert data["error_count"] == 0

    def test_helpers_without_active_run(self):
        """Counting outside a run is a no-op."""
        end_analysis_metrics()
        increment_db_query()
        record_operation_timing("x", 1.0)
        assert get_analysis_metrics() is None

    def test_worker_threads_share_the_run(self):
        """Copied contexts carry the metrics into worker threads."""
        metrics = start_analysis_metrics("run-2")
        try:
            with ThreadPoolExecutor(max_workers=4) as pool:
                futures = [
                    pool.submit(contextvars.copy_context().run, increment_db_query)
                    for _ in range(100)
                ]
                for f in futures:
                    f.result()
        finally:
            end_analysis_metrics()
        assert metrics.db_queries == 100

    def test_record_error(self):
        metrics = start_analysis_metrics("run-3")
        metrics.record_error("overlap failed")
        end_analysis_metrics()
        assert metrics.to_dict()["error_count"] == 1


class TestLogContext:
    def test_nested_context(self):
        logger = get_logger(__name__)
        with log_context(analysis_id="a"):
            with log_context(table="orders"):
                logger.debug("inside")
            logger.debug("outside")
