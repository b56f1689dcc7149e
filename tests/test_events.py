import time

from skillprobe.interview.events import (
    ChannelEvent, ChannelEventKind, EventLogger, InterviewEventBus, NoticeEvent,
    RecordingToggledEvent, SessionEventType, SessionMetrics, SessionStartedEvent
)


def test_failing_handler_does_not_block_others():
    bus = InterviewEventBus()
    seen = []

    def broken(event):
        raise RuntimeError("ui went away")

    bus.subscribe(SessionEventType.NOTICE, broken)
    bus.subscribe(SessionEventType.NOTICE, seen.append)
    bus.subscribe_all(seen.append)
    bus.emit(NoticeEvent(time.time(), "info", "Recording stopped"))

    assert len(seen) == 2


def test_unsubscribe_and_clear():
    bus = InterviewEventBus()
    seen = []
    bus.subscribe(SessionEventType.NOTICE, seen.append)
    bus.unsubscribe(SessionEventType.NOTICE, seen.append)
    bus.emit(NoticeEvent(time.time(), "info", "hello"))

    bus.subscribe_all(seen.append)
    bus.clear_handlers()
    bus.emit(NoticeEvent(time.time(), "info", "hello"))

    assert seen == []


def test_metrics_count_session_events():
    bus = InterviewEventBus()
    metrics = SessionMetrics()
    bus.subscribe_all(metrics.handle_event)
    bus.subscribe_all(EventLogger().handle_event)

    bus.emit(SessionStartedEvent(time.time(), "Backend Engineer"))
    bus.emit(RecordingToggledEvent(time.time(), True))
    bus.emit(RecordingToggledEvent(time.time(), False))

    counts = metrics.get_metrics()
    assert counts["sessions_started"] == 1
    assert counts["recording_toggles"] == 2
    metrics.reset()
    assert metrics.get_metrics()["recording_toggles"] == 0


def test_channel_event_constructors():
    assert ChannelEvent.opened().kind == ChannelEventKind.OPEN
    assert ChannelEvent.failed("boom").reason == "boom"
    assert ChannelEvent.closed().reason == ""
