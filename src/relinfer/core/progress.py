"""Progress reporting port.

The engine emits ProgressEvents to a ProgressSink. Sinks must never block the
sender and must never raise into it.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from pydantic import Field

from relinfer.core.logging import get_logger
from relinfer.core.models import ReportModel

logger = get_logger(__name__)


class ProgressStage(str, Enum):
    STARTED = "started"
    LISTING_TABLES = "listing_tables"
    PROFILING = "profiling"
    SCHEMA_EVIDENCE = "schema_evidence"
    CANDIDATES = "candidates"
    ANALYZING = "analyzing"
    REPORTING = "reporting"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProgressEvent(ReportModel):
    stage: ProgressStage
    message: str
    table_name: str | None = None
    percent_complete: float | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


@runtime_checkable
class ProgressSink(Protocol):
    """One-way receiver of progress events."""

    def emit(self, event: ProgressEvent) -> None: ...


class NullProgressSink:
    """Discards every event."""

    def emit(self, event: ProgressEvent) -> None:
        return None


class CallbackProgressSink:
    """Forwards events to a callable. Callback errors are logged and dropped."""

    def __init__(self, callback: Callable[[ProgressEvent], None]):
        self._callback = callback

    def emit(self, event: ProgressEvent) -> None:
        try:
            self._callback(event)
        except Exception as e:
            logger.warning("progress_callback_failed", stage=event.stage.value, error=str(e))


class QueueProgressSink:
    """Buffers events in a bounded queue for another thread to consume.

    When the queue is full the event is dropped and counted.
    """

    def __init__(self, maxsize: int = 1000):
        self.queue: queue.Queue[ProgressEvent] = queue.Queue(maxsize=maxsize)
        self._dropped = 0
        self._lock = threading.Lock()

    @property
    def dropped(self) -> int:
        return self._dropped

    def emit(self, event: ProgressEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except queue.Full:
            with self._lock:
                self._dropped += 1

    def drain(self) -> list[ProgressEvent]:
        """Return all buffered events without blocking."""
        events: list[ProgressEvent] = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except queue.Empty:
                return events


class LoggingProgressSink:
    """Writes events to the structured log."""

    def __init__(self, log_level: str = "info"):
        self._log = getattr(logger, log_level.lower())

    def emit(self, event: ProgressEvent) -> None:
        self._log(
            "progress",
            stage=event.stage.value,
            message=event.message,
            table=event.table_name,
            percent=event.percent_complete,
        )
