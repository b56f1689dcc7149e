import asyncio
import time

from skillprobe.__main__ import build_event_bus, format_summary
from skillprobe.infrastructure.media import MediaAcquisition
from skillprobe.interview.events import NoticeEvent, SessionErroredEvent
from skillprobe.interview.models import Settings
from skillprobe.interview.session import InterviewSession
from skillprobe.interview.testing import (
    MockAudioPlayer, MockDeviceBackend, MockInterviewRecords, MockLiveDialogueClient,
    StepSleeper, audio_turn, settle
)


def test_console_bus_counts_a_finished_interview(capsys):
    async def scenario():
        event_bus, metrics = build_event_bus()
        client = MockLiveDialogueClient()
        session = InterviewSession(
            Settings(job_role="Backend Engineer", enable_video=False),
            client,
            media=MediaAcquisition(MockDeviceBackend()),
            player=MockAudioPlayer(),
            records=MockInterviewRecords(),
            interview_id=3,
            event_bus=event_bus,
            sleep=StepSleeper(0),
        )
        await session.start()
        client.handle.push_turn(audio_turn())
        client.handle.push_turn(audio_turn())
        await settle()
        session.toggle_recording()
        session.toggle_recording()
        await session.end()
        return metrics

    metrics = asyncio.run(scenario())

    counts = metrics.get_metrics()
    assert counts["sessions_started"] == 1
    assert counts["sessions_ended"] == 1
    assert counts["turns_received"] == 2
    assert counts["recording_toggles"] == 2
    assert format_summary(metrics) == "📊 Session ended: 2 interviewer turns, 2 recording toggles"
    assert "Recording started" in capsys.readouterr().out


def test_summary_reports_errored_and_abandoned_sessions():
    event_bus, metrics = build_event_bus()
    assert format_summary(metrics) == "📊 Session left: 0 interviewer turns, 0 recording toggles"

    event_bus.emit(SessionErroredEvent(time.time(), "ChannelRuntimeError", "socket closed"))
    assert format_summary(metrics).startswith("📊 Session errored:")


def test_notices_are_printed(capsys):
    event_bus, _ = build_event_bus()
    event_bus.emit(NoticeEvent(time.time(), "error", "Microphone unavailable"))

    assert "❌ Microphone unavailable" in capsys.readouterr().out
