"""Tests for Tracker."""

from unittest.mock import Mock

import pytest

from task_manager.tracing import TraceContextManager, get_current_context
from task_manager.tracker import Tracker

from conftest import PARENT_SPAN_ID, TRACE_ID, TRACEPARENT


class TestTrackerTrack:
    """Tests for Tracker.track() method."""

    @pytest.mark.asyncio
    async def test_track_creates_event(self, tracker):
        """Test that track() creates a TraceEvent."""
        event = await tracker.track(event_type="test_event", actor="test_actor", data={"key": "value"})

        events = tracker.get_trace_events()
        assert events == [event]
        assert event.id
        assert event.data == {"key": "value"}
        assert event.timestamp is not None

    @pytest.mark.asyncio
    async def test_track_outside_span_has_no_trace(self, tracker):
        """Test that events outside a span are uncorrelated."""
        event = await tracker.track("test_event", "test_actor", {})
        assert event.trace_id is None
        assert event.span_id is None

    @pytest.mark.asyncio
    async def test_track_inside_span_is_correlated(self, tracker):
        """Test that events carry the active span's ids."""
        async with tracker.span("work") as span:
            event = await tracker.track("test_event", "test_actor", {})
        assert event.trace_id == span.context.trace_id
        assert event.span_id == span.context.span_id

    @pytest.mark.asyncio
    async def test_filters_and_limit(self, tracker):
        """Test event type, actor and limit filters."""
        for i in range(3):
            await tracker.track("a", "x", {"i": i})
        await tracker.track("b", "y", {})

        assert len(tracker.get_trace_events(event_types=["a"])) == 3
        assert [e.event_type for e in tracker.get_trace_events(actor="y")] == ["b"]
        assert [e.data["i"] for e in tracker.get_trace_events(event_types=["a"], limit=2)] == [1, 2]

    @pytest.mark.asyncio
    async def test_bounded_buffer(self):
        """Test that old events are evicted."""
        tracker = Tracker(max_events=2)
        for i in range(3):
            await tracker.track("a", "x", {"i": i})
        assert [e.data["i"] for e in tracker.get_trace_events()] == [1, 2]


class TestTrackerSpan:
    """Tests for Tracker.span()."""

    @pytest.mark.asyncio
    async def test_span_continues_parent(self, tracker):
        """Test that an explicit parent's trace is continued."""
        parent = TraceContextManager().extract({"traceparent": TRACEPARENT})

        async with tracker.span("route", parent=parent) as span:
            assert get_current_context() is span.context

        assert span.context.trace_id == TRACE_ID
        assert span.context.parent_span_id == PARENT_SPAN_ID
        assert span.status == "ok"
        assert span.end_time is not None
        assert get_current_context() is None

    @pytest.mark.asyncio
    async def test_nested_spans_inherit(self, tracker):
        """Test that a nested span is a child of the active one."""
        async with tracker.span("outer") as outer:
            async with tracker.span("inner") as inner:
                pass

        assert inner.context.trace_id == outer.context.trace_id
        assert inner.context.parent_span_id == outer.context.span_id
        assert [s.name for s in tracker.get_spans()] == ["inner", "outer"]

    @pytest.mark.asyncio
    async def test_inherit_false_starts_new_trace(self, tracker):
        """Test that inherit=False ignores the active span."""
        async with tracker.span("outer") as outer:
            async with tracker.span("detached", inherit=False) as detached:
                pass
        assert detached.context.trace_id != outer.context.trace_id

    @pytest.mark.asyncio
    async def test_span_error_recorded_and_reraised(self, tracker):
        """Test that an exception marks the span as failed."""
        with pytest.raises(ValueError):
            async with tracker.span("work"):
                raise ValueError("bad input")

        span = tracker.get_spans()[0]
        assert span.status == "error"
        assert span.status_message == "bad input"
        assert span.events[0].name == "exception"
        assert span.events[0].attributes["exception.type"] == "ValueError"
        assert get_current_context() is None

    @pytest.mark.asyncio
    async def test_sink_receives_finished_spans(self):
        """Test that finished spans are handed to the sink."""
        sink = Mock()
        tracker = Tracker(sink=sink)
        async with tracker.span("work") as span:
            sink.record_span.assert_not_called()
        sink.record_span.assert_called_once_with(span)

    @pytest.mark.asyncio
    async def test_get_spans_by_trace(self, tracker):
        async with tracker.span("one") as one:
            pass
        async with tracker.span("two", inherit=False):
            pass
        assert tracker.get_spans(trace_id=one.context.trace_id) == [one]

    @pytest.mark.asyncio
    async def test_clear(self, tracker):
        async with tracker.span("work"):
            await tracker.track("a", "x", {})
        tracker.clear()
        assert tracker.get_spans() == []
        assert tracker.get_trace_events() == []
