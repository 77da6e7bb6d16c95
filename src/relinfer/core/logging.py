"""Structured logging infrastructure.

This module provides logging that works for:
- Local CLI use (console output)
- Services embedding the engine (JSON structured logs)

Usage:
    from relinfer.core.logging import get_logger, configure_logging

    # Configure at startup
    configure_logging(log_level="INFO", log_format="console")

    # Get logger in any module
    logger = get_logger(__name__)

    # Log with structured context
    logger.info("table_profiled", table="orders", columns=4)

    # Use context managers for automatic context propagation
    with log_context(analysis_id="a-123"):
        logger.info("candidate_analyzed", table="orders", column="customer_ref")
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import MutableMapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast

import structlog
from structlog.typing import FilteringBoundLogger

# Context variables for correlation
_run_context: ContextVar[dict[str, Any] | None] = ContextVar("run_context", default=None)


@dataclass
class AnalysisMetrics:
    """Metrics collected during one analysis run.

    Counters are updated from worker threads, so every mutation goes through
    the instance lock.
    """

    analysis_id: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    # Counters
    tables_profiled: int = 0
    columns_profiled: int = 0
    candidates_analyzed: int = 0
    db_queries: int = 0
    cache_hits: int = 0

    # Sub-operation timings (seconds)
    timings: dict[str, float] = field(default_factory=dict)

    errors: list[str] = field(default_factory=list)

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def duration_seconds(self) -> float:
        """Get duration in seconds."""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return (datetime.now(UTC) - self.start_time).total_seconds()

    def increment(self, counter: str, amount: int = 1) -> None:
        """Increment a named counter."""
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def record_timing(self, operation: str, seconds: float) -> None:
        """Record timing for a sub-operation."""
        with self._lock:
            self.timings[operation] = self.timings.get(operation, 0.0) + seconds

    def record_error(self, message: str) -> None:
        with self._lock:
            self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "analysis_id": self.analysis_id,
            "duration_seconds": round(self.duration_seconds, 3),
            "tables_profiled": self.tables_profiled,
            "columns_profiled": self.columns_profiled,
            "candidates_analyzed": self.candidates_analyzed,
            "db_queries": self.db_queries,
            "cache_hits": self.cache_hits,
            "timings": {k: round(v, 3) for k, v in self.timings.items()},
            "error_count": len(self.errors),
        }


# Metrics storage (per-run)
_current_metrics: ContextVar[AnalysisMetrics | None] = ContextVar("current_metrics", default=None)


def start_analysis_metrics(analysis_id: str) -> AnalysisMetrics:
    """Start collecting metrics for an analysis run."""
    metrics = AnalysisMetrics(analysis_id=analysis_id)
    _current_metrics.set(metrics)
    return metrics


def get_analysis_metrics() -> AnalysisMetrics | None:
    """Get current analysis metrics."""
    return _current_metrics.get()


def end_analysis_metrics() -> AnalysisMetrics | None:
    """End analysis metrics collection."""
    metrics = _current_metrics.get()
    if metrics:
        metrics.end_time = datetime.now(UTC)
        _current_metrics.set(None)
    return metrics


def _add_run_context(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Processor to add run context to log events."""
    context = _run_context.get()
    if context:
        event_dict.update(context)
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    show_timestamps: bool = True,
    color: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Output format ("console" for development, "json" for services)
        show_timestamps: Whether to show timestamps in console mode
        color: Whether to use colors in console mode
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_run_context,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if show_timestamps:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=color,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Also configure stdlib logging for libraries
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound structlog logger
    """
    return cast(FilteringBoundLogger, structlog.get_logger(name))


class LogContext:
    """Context manager for adding context to logs within a scope."""

    def __init__(self, **context: Any):
        self.context = context
        self.token: Any = None

    def __enter__(self) -> LogContext:
        current = _run_context.get() or {}
        self.token = _run_context.set({**current, **self.context})
        return self

    def __exit__(self, *args: Any) -> None:
        if self.token:
            _run_context.reset(self.token)


def log_context(**context: Any) -> LogContext:
    """Create a context manager for scoped logging context.

    Usage:
        with log_context(analysis_id="abc"):
            logger.info("processing")  # Will include analysis_id
    """
    return LogContext(**context)


# Convenience functions for metrics tracking
def increment_db_query() -> None:
    """Increment database query counter in current analysis metrics."""
    metrics = _current_metrics.get()
    if metrics:
        metrics.increment("db_queries")


def increment_cache_hit() -> None:
    """Increment cache hit counter in current analysis metrics."""
    metrics = _current_metrics.get()
    if metrics:
        metrics.increment("cache_hits")


def record_operation_timing(operation: str, seconds: float) -> None:
    """Record timing for a sub-operation in current analysis metrics."""
    metrics = _current_metrics.get()
    if metrics:
        metrics.record_timing(operation, seconds)


# Initialize with default configuration
configure_logging()
