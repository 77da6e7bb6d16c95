"""Tests for progress sinks."""

from relinfer.core.progress import (
    CallbackProgressSink,
    LoggingProgressSink,
    NullProgressSink,
    ProgressEvent,
    ProgressSink,
    ProgressStage,
    QueueProgressSink,
)


def _event(stage=ProgressStage.PROFILING, message="Profiling orders"):
    return ProgressEvent(stage=stage, message=message, table_name="orders", percent_complete=25.0)


class TestProgressEvent:
    """Tests for the event model."""

    def test_json_uses_camel_case(self):
        """Events serialize with camelCase keys."""
        data = _event().to_json_dict()
        assert data["stage"] == "profiling"
        assert data["tableName"] == "orders"
        assert data["percentComplete"] == 25.0
        assert "timestamp" in data


class TestSinks:
    """Tests for the sink implementations."""

    def test_all_sinks_satisfy_protocol(self):
        """Every sink is a ProgressSink."""
        for sink in (
            NullProgressSink(),
            CallbackProgressSink(lambda e: None),
            QueueProgressSink(),
            LoggingProgressSink(),
        ):
            assert isinstance(sink, ProgressSink)

    def test_callback_receives_events(self):
        """CallbackProgressSink forwards each event."""
        received = []
        sink = CallbackProgressSink(received.append)
        sink.emit(_event())
        sink.emit(_event(ProgressStage.COMPLETED, "done"))
        assert [e.stage for e in received] == [ProgressStage.PROFILING, ProgressStage.COMPLETED]

    def test_callback_errors_do_not_propagate(self):
        """A failing callback never raises into the sender."""

        def boom(event):
            raise RuntimeError("listener broke")

        CallbackProgressSink(boom).emit(_event())

    def test_queue_sink_drains_in_order(self):
        """QueueProgressSink buffers events for another thread."""
        sink = QueueProgressSink()
        sink.emit(_event(message="one"))
        sink.emit(_event(message="two"))
        assert [e.message for e in sink.drain()] == ["one", "two"]
        assert sink.drain() == []

    def test_queue_sink_drops_when_full(self):
        """A full queue drops events instead of blocking."""
        sink = QueueProgressSink(maxsize=1)
        sink.emit(_event(message="kept"))
        sink.emit(_event(message="dropped"))
        assert sink.dropped == 1
        assert [e.message for e in sink.drain()] == ["kept"]

    def test_logging_sink_accepts_events(self):
        """LoggingProgressSink writes without raising."""
        LoggingProgressSink("debug").emit(_event())
