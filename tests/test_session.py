import asyncio
import threading

import numpy as np
import pytest

from skillprobe.interview.events import SessionEventType
from skillprobe.interview.models import Settings, TurnKind
from skillprobe.interview.schemas import ConnectionStatus, Rating, SessionPhase
from skillprobe.interview.session import InterviewSession, format_duration
from skillprobe.interview.testing import (
    MockDeviceBackend, MockInterviewRecords, MockLiveDialogueClient, StepSleeper,
    audio_turn, control_turn, create_mock_session_setup, settle
)


def test_format_duration():
    assert format_duration(125) == "02:05"
    assert format_duration(0) == "00:00"
    assert format_duration(3600) == "60:00"


def test_empty_job_role_is_rejected():
    with pytest.raises(ValueError, match="Please enter a job role"):
        InterviewSession(Settings(job_role="   "), MockLiveDialogueClient())


def test_audio_only_start_goes_active_without_camera():
    async def scenario():
        setup = create_mock_session_setup(job_role="Backend Engineer", enable_video=False)
        session = setup["session"]
        snap = await session.start()
        await session.teardown()
        return setup, snap

    setup, snap = asyncio.run(scenario())

    assert snap.phase == SessionPhase.ACTIVE.value
    assert snap.connection == ConnectionStatus.CONNECTED.value
    assert setup["backend"].requested == ["audio"]
    assert setup["backend"].cameras == []
    texts = setup["client"].handle.sent_texts
    assert len(texts) == 1
    assert "Backend Engineer position" in texts[0]
    assert "Interview session started!" in setup["recorder"].notices()


def test_channel_open_failure_errors_and_releases_media():
    async def scenario():
        setup = create_mock_session_setup(client=MockLiveDialogueClient(fail_with="handshake rejected"))
        snap = await setup["session"].start()
        return setup, snap

    setup, snap = asyncio.run(scenario())

    assert snap.phase == SessionPhase.ERRORED.value
    assert snap.connection == ConnectionStatus.DISCONNECTED.value
    assert snap.error.startswith("Failed to start interview session")
    assert "handshake rejected" in snap.error
    assert all(not track.live for track in setup["backend"].microphones + setup["backend"].cameras)
    assert setup["player"].close_calls == 1
    assert setup["recorder"].of_type(SessionEventType.SESSION_ERRORED)


def test_media_failure_closes_the_opened_channel():
    async def scenario():
        backend = MockDeviceBackend(
            audio_error=OSError("permission denied"),
            video_error=OSError("permission denied"),
        )
        setup = create_mock_session_setup(backend=backend)
        snap = await setup["session"].start()
        return setup, snap

    setup, snap = asyncio.run(scenario())

    assert snap.phase == SessionPhase.ERRORED.value
    assert "Could not access camera or microphone" in snap.error
    assert setup["client"].handle.closed


def test_start_only_once():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        try:
            with pytest.raises(RuntimeError):
                await session.start()
        finally:
            await session.teardown()

    asyncio.run(scenario())


def test_turn_log_keeps_every_inbound_turn_in_order():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        handle = setup["client"].handle
        sent = [audio_turn(b"\x01\x00" * 24), audio_turn(b"\x02\x00" * 24),
                control_turn(TurnKind.TURN_COMPLETE), audio_turn(b"\x03\x00" * 24)]
        for turn in sent:
            handle.push_turn(turn)
        await settle()
        turns = list(session.turns)
        snap = session.snapshot()
        await session.teardown()
        return sent, turns, snap

    sent, turns, snap = asyncio.run(scenario())

    assert turns == sent
    assert snap.message_count == 4
    assert snap.recent_turns == sent


def test_recent_turns_are_capped_at_five():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        for i in range(7):
            setup["client"].handle.push_turn(audio_turn(bytes([i, 0]) * 24))
        await settle()
        snap = session.snapshot()
        await session.teardown()
        return session, snap

    session, snap = asyncio.run(scenario())

    assert snap.message_count == 7
    assert snap.recent_turns == session.turns[-5:]


def test_turn_complete_clears_the_buffer_but_not_the_log():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        handle = setup["client"].handle
        handle.push_turn(audio_turn())
        handle.push_turn(audio_turn())
        await settle()
        buffered = len(session.current_turn)
        handle.push_turn(control_turn(TurnKind.TURN_COMPLETE))
        await settle()
        result = (buffered, list(session.current_turn), len(session.turns))
        await session.teardown()
        return result

    buffered, current, logged = asyncio.run(scenario())

    assert buffered == 2
    assert current == []
    assert logged == 3


def test_interruption_silences_the_interviewer():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        handle = setup["client"].handle
        handle.push_turn(audio_turn())
        await settle()
        speaking_before = session.is_speaking
        handle.push_turn(control_turn(TurnKind.INTERRUPTED))
        await settle()
        result = (speaking_before, session.is_speaking, setup["player"].stop_calls, len(session.current_turn))
        await session.teardown()
        return result

    speaking_before, speaking_after, stop_calls, buffered = asyncio.run(scenario())

    assert speaking_before is True
    assert speaking_after is False
    assert stop_calls == 1
    assert buffered == 2


def test_new_audio_replaces_playback_and_only_current_end_counts():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        player = setup["player"]
        await session.start()
        handle = setup["client"].handle
        handle.push_turn(audio_turn(b"\x01\x00" * 240))
        handle.push_turn(audio_turn(b"\x02\x00" * 240))
        await settle()
        speaking = session.is_speaking
        clips = list(player.clips)
        player.finish()
        result = (speaking, clips, session.is_speaking)
        await session.teardown()
        return result

    speaking, clips, speaking_after_end = asyncio.run(scenario())

    assert speaking is True
    assert clips == [b"\x01\x00" * 240, b"\x02\x00" * 240]
    assert speaking_after_end is False


def test_inbound_audio_at_another_rate_is_resampled_for_playback():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        setup["client"].handle.push_turn(audio_turn(b"\x00\x10" * 160, rate=16000))
        await settle()
        clips = list(setup["player"].clips)
        await session.teardown()
        return clips

    clips = asyncio.run(scenario())
    assert len(clips[0]) == 240 * 2


def test_toggle_while_disconnected_is_a_no_op():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        return session.toggle_recording(), session.is_recording

    toggled, recording = asyncio.run(scenario())
    assert toggled is False
    assert recording is False


def test_audio_streams_only_while_recording():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        mic = setup["backend"].microphones[0]
        handle = setup["client"].handle
        block = np.full(4096, 0.25, dtype=np.float32)

        mic.push(block)
        before = len(handle.sent_frames)
        assert session.toggle_recording() is True
        mic.push(block)
        during = len(handle.sent_frames)
        session.toggle_recording()
        mic.push(block)
        after = len(handle.sent_frames)
        await session.teardown()
        return before, during, after, handle.sent_frames, setup["recorder"].notices()

    before, during, after, frames, notices = asyncio.run(scenario())

    assert (before, during, after) == (0, 1, 1)
    assert frames[0].mime_type == "audio/pcm;rate=16000"
    assert frames[0].sample_count == 4096
    assert "Recording started" in notices
    assert "Recording stopped" in notices


def test_teardown_is_idempotent():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        session.toggle_recording()
        await asyncio.gather(session.teardown(), session.teardown())
        await session.teardown()
        return setup, session.snapshot()

    setup, snap = asyncio.run(scenario())

    handle = setup["client"].handle
    assert handle.close_calls == 1
    assert handle.close_reason == "user_initiated"
    assert setup["player"].close_calls == 1
    assert not setup["backend"].microphones[0].live
    assert not setup["backend"].cameras[0].live
    assert snap.connection == ConnectionStatus.DISCONNECTED.value
    assert snap.is_recording is False


def test_teardown_before_start_is_harmless():
    async def scenario():
        setup = create_mock_session_setup()
        await setup["session"].teardown()
        return setup["session"].snapshot()

    snap = asyncio.run(scenario())
    assert snap.phase == SessionPhase.IDLE.value


def test_remote_error_mid_session_is_fatal():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        session.toggle_recording()
        setup["client"].handle.push_error("socket reset")
        await settle()
        return setup, session.snapshot()

    setup, snap = asyncio.run(scenario())

    assert snap.phase == SessionPhase.ERRORED.value
    assert snap.connection == ConnectionStatus.DISCONNECTED.value
    assert snap.is_recording is False
    assert "socket reset" in snap.error
    assert "Interview session ended unexpectedly" in setup["recorder"].notices()
    assert setup["client"].handle.closed
    assert not setup["backend"].microphones[0].live


def test_unexpected_server_close_is_fatal():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        setup["client"].handle.push_remote_close("server going away")
        await settle()
        return session

    session = asyncio.run(scenario())
    assert session.phase == SessionPhase.ERRORED
    assert session.close_reason == "server going away"


def test_duration_counts_connected_seconds():
    async def scenario():
        sleeper = StepSleeper(125)
        setup = create_mock_session_setup(sleeper=sleeper)
        session = setup["session"]
        await session.start()
        await asyncio.wait_for(sleeper.exhausted.wait(), 1.0)
        snap = session.snapshot()
        await session.teardown()
        return snap, session.duration

    snap, duration_after_teardown = asyncio.run(scenario())

    assert snap.duration == 125
    assert snap.duration_display == "02:05"
    assert duration_after_teardown == 125


def test_end_synthesizes_and_persists_feedback_once():
    async def scenario():
        setup = create_mock_session_setup(job_role="Product Manager")
        session = setup["session"]
        await session.start()
        setup["client"].handle.push_turn(audio_turn())
        setup["client"].handle.push_turn(control_turn(TurnKind.TURN_COMPLETE))
        await settle()
        first, second = await asyncio.gather(session.end(), session.end())
        again = await session.end()
        return setup, session, first, second, again

    setup, session, first, second, again = asyncio.run(scenario())

    assert first is second
    assert again is None
    assert first.overall_rating == Rating.GOOD
    assert first.insights.messages_count == 2
    assert first.insights.job_role == "Product Manager"
    assert session.phase == SessionPhase.IDLE
    assert session.feedback is first
    assert setup["records"].completed == [{"interview_id": 7, "feedback": first}]
    ended = setup["recorder"].of_type(SessionEventType.SESSION_ENDED)
    assert len(ended) == 1
    assert ended[0].data["persisted"] is True
    assert setup["client"].handle.closed


def test_end_survives_persistence_failure():
    async def scenario():
        setup = create_mock_session_setup(records=MockInterviewRecords(fail_with="503 unavailable"))
        session = setup["session"]
        await session.start()
        feedback = await session.end()
        return setup, session, feedback

    setup, session, feedback = asyncio.run(scenario())

    assert feedback is not None
    assert session.phase == SessionPhase.IDLE
    assert "Failed to complete interview: 503 unavailable" in setup["recorder"].notices()
    ended = setup["recorder"].of_type(SessionEventType.SESSION_ENDED)
    assert ended[0].data["persisted"] is False


def test_end_outside_active_returns_none():
    async def scenario():
        setup = create_mock_session_setup()
        return await setup["session"].end()

    assert asyncio.run(scenario()) is None


def test_back_leaves_without_feedback():
    async def scenario():
        setup = create_mock_session_setup()
        session = setup["session"]
        await session.start()
        await session.back()
        return setup, session

    setup, session = asyncio.run(scenario())

    assert session.phase == SessionPhase.IDLE
    assert session.feedback is None
    assert setup["records"].completed == []
    assert setup["client"].handle.closed


def test_leaving_during_setup_releases_late_resources():
    async def scenario():
        gate = asyncio.Event()
        setup = create_mock_session_setup(client=MockLiveDialogueClient(gate=gate))
        session = setup["session"]
        starting = asyncio.create_task(session.start())
        await settle()
        await session.back()
        gate.set()
        snap = await asyncio.wait_for(starting, 1.0)
        return setup, snap

    setup, snap = asyncio.run(scenario())

    assert snap.phase == SessionPhase.IDLE.value
    assert setup["client"].handle.closed
    assert all(not track.live for track in setup["backend"].microphones + setup["backend"].cameras)


def test_context_manager_tears_down():
    async def scenario():
        setup = create_mock_session_setup()
        async with setup["session"] as session:
            await session.start()
        return setup

    setup = asyncio.run(scenario())
    assert setup["client"].handle.closed
    assert setup["player"].close_calls == 1


def test_cancelling_start_releases_devices_that_open_afterwards():
    async def scenario():
        gate = threading.Event()
        setup = create_mock_session_setup(backend=MockDeviceBackend(gate=gate))
        session = setup["session"]
        starting = asyncio.create_task(session.start())
        for _ in range(200):
            if "audio" in setup["backend"].requested:
                break
            await asyncio.sleep(0.01)

        # The microphone is still opening in its worker thread
        starting.cancel()
        await settle()
        gate.set()
        await asyncio.wait([starting], timeout=2.0)
        return setup, starting

    setup, starting = asyncio.run(scenario())

    assert starting.cancelled()
    assert setup["session"].torn_down
    assert len(setup["backend"].microphones) == 1
    assert all(not track.live for track in setup["backend"].microphones + setup["backend"].cameras)
    assert setup["client"].handle.closed
