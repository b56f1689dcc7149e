"""
Testing infrastructure with mock devices and services for the interview session.
"""
import asyncio
import threading
from typing import Any, Dict, List, Optional

import numpy as np

from ..config import LOCAL_CLOSE_REASON, PCM_MIME_TYPE, SAMPLE_RATE_OUTPUT, SAMPLE_RATE_TARGET
from ..infrastructure.audio.playback import AudioPlayer
from ..infrastructure.media import CameraTrack, MediaAcquisition, MicrophoneTrack
from .errors import ChannelOpenFailed
from .events import ChannelEvent, InterviewEventBus, SessionEvent, SessionEventType
from .models import Settings, Turn, TurnKind, TurnOrigin
from .services import SessionGrant
from .session import InterviewSession


class MockMicrophoneTrack(MicrophoneTrack):
    """Microphone track fed by the test instead of a device."""

    def __init__(self, sample_rate: int = SAMPLE_RATE_TARGET, channels: int = 1,
                 loop=None, stop_error: Optional[Exception] = None):
        super().__init__(sample_rate, channels, loop)
        self.stop_error = stop_error
        self.released = False

    def push(self, block) -> None:
        """Deliver one captured block to the subscribers."""
        self._deliver(np.asarray(block, dtype=np.float32))

    def _release(self) -> None:
        self.released = True
        if self.stop_error is not None:
            raise self.stop_error


class MockCameraTrack(CameraTrack):
    """Camera track that serves a blank frame."""

    def __init__(self, width: int = 640, height: int = 480):
        super().__init__(width, height)
        self.released = False

    def read_frame(self) -> Optional[np.ndarray]:
        if not self.live:
            return None
        return np.zeros((self.height, self.width, 3), dtype=np.uint8)

    def _release(self) -> None:
        self.released = True


class MockDeviceBackend:
    """Device backend that records which devices were requested."""

    def __init__(self,
                 audio_error: Optional[Exception] = None,
                 video_error: Optional[Exception] = None,
                 sample_rate: int = SAMPLE_RATE_TARGET,
                 channels: int = 1,
                 gate: Optional[threading.Event] = None):
        self.audio_error = audio_error
        self.video_error = video_error
        self.sample_rate = sample_rate
        self.channels = channels
        self.gate = gate
        self.requested: List[str] = []
        self.microphones: List[MockMicrophoneTrack] = []
        self.cameras: List[MockCameraTrack] = []

    def open_microphone(self, loop, *args, **kwargs) -> MockMicrophoneTrack:
        self.requested.append("audio")
        if self.gate is not None:
            # Runs in a worker thread, like a slow device driver
            self.gate.wait(timeout=5)
        if self.audio_error is not None:
            raise self.audio_error
        track = MockMicrophoneTrack(self.sample_rate, self.channels, loop)
        self.microphones.append(track)
        return track

    def open_camera(self, *args, **kwargs) -> MockCameraTrack:
        self.requested.append("video")
        if self.video_error is not None:
            raise self.video_error
        track = MockCameraTrack()
        self.cameras.append(track)
        return track


class MockLiveHandle:
    """Open live channel that records what was sent and lets tests play the server."""

    def __init__(self, events: asyncio.Queue, close_error: Optional[Exception] = None):
        self.events = events
        self.close_error = close_error
        self.sent_frames = []
        self.sent_texts: List[str] = []
        self.close_calls = 0
        self.close_reason: Optional[str] = None
        self.closed = False

    def send_audio_chunk(self, frame) -> None:
        if not self.closed:
            self.sent_frames.append(frame)

    def send_text_turn(self, text: str) -> None:
        if not self.closed:
            self.sent_texts.append(text)

    async def close(self, reason: str = LOCAL_CLOSE_REASON) -> None:
        self.close_calls += 1
        if self.closed:
            return
        self.closed = True
        self.close_reason = reason
        self.events.put_nowait(ChannelEvent.closed(reason))
        if self.close_error is not None:
            raise self.close_error

    # Server side

    def push_turn(self, turn: Turn) -> None:
        self.events.put_nowait(ChannelEvent.received(turn))

    def push_error(self, reason: str) -> None:
        self.events.put_nowait(ChannelEvent.failed(reason))
        self.events.put_nowait(ChannelEvent.closed(reason))

    def push_remote_close(self, reason: str = "") -> None:
        self.events.put_nowait(ChannelEvent.closed(reason))


class MockLiveDialogueClient:
    """Dialogue client that opens MockLiveHandles, or fails to."""

    def __init__(self, fail_with: Optional[str] = None, close_error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None):
        self.fail_with = fail_with
        self.close_error = close_error
        self.gate = gate
        self.open_calls = 0
        self.settings: Optional[Settings] = None
        self.handle: Optional[MockLiveHandle] = None

    async def open(self, settings: Settings, events: asyncio.Queue) -> MockLiveHandle:
        self.open_calls += 1
        self.settings = settings
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise ChannelOpenFailed(self.fail_with)
        self.handle = MockLiveHandle(events, self.close_error)
        events.put_nowait(ChannelEvent.opened())
        return self.handle


class MockAudioPlayer(AudioPlayer):
    """Playback element that never opens an output stream."""

    def __init__(self, sample_rate: int = SAMPLE_RATE_OUTPUT):
        # Don't call super().__init__ to avoid touching PortAudio
        self.sample_rate = sample_rate
        self.clips: List[bytes] = []
        self.stop_calls = 0
        self.close_calls = 0
        self._generation = 0
        self._on_ended = None
        self._playing = False
        self._closed = False

    @property
    def is_playing(self) -> bool:
        return self._playing

    def play(self, pcm: bytes, on_ended=None) -> int:
        if self._closed:
            raise RuntimeError("Audio player is closed")
        self._generation += 1
        self.clips.append(bytes(pcm))
        self._on_ended = on_ended
        self._playing = True
        return self._generation

    def stop(self) -> None:
        self.stop_calls += 1
        self._generation += 1
        self._on_ended = None
        self._playing = False

    def close(self) -> None:
        self.close_calls += 1
        if not self._closed:
            self._closed = True
            self.stop()

    def finish(self) -> None:
        """Simulate the current clip running out."""
        callback, self._on_ended = self._on_ended, None
        self._playing = False
        if callback is not None:
            callback()


class MockInterviewRecords:
    """Persistence collaborator that keeps everything in memory."""

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.created: List[Settings] = []
        self.completed: List[Dict[str, Any]] = []

    async def create_session(self, settings: Settings, resume_analysis_id: Optional[int] = None) -> SessionGrant:
        self.created.append(settings)
        return SessionGrant(interview_id=len(self.created), token="mock-token")

    async def complete_interview(self, interview_id: int, feedback) -> None:
        if self.fail_with is not None:
            raise RuntimeError(self.fail_with)
        self.completed.append({"interview_id": interview_id, "feedback": feedback})


class StepSleeper:
    """
    Stand-in for asyncio.sleep in the duration ticker. Lets a fixed number of
    ticks through, one per loop iteration, then parks until cancelled.
    """

    def __init__(self, ticks: int):
        self.remaining = ticks
        self.calls = 0
        self.exhausted = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.calls += 1
        if self.remaining <= 0:
            self.exhausted.set()
            await asyncio.get_running_loop().create_future()
        self.remaining -= 1
        await asyncio.sleep(0)


class EventRecorder:
    """Collects session events for assertions."""

    def __init__(self):
        self.events: List[SessionEvent] = []

    def handle_event(self, event: SessionEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: SessionEventType) -> List[SessionEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def notices(self) -> List[str]:
        return [e.data["message"] for e in self.of_type(SessionEventType.NOTICE)]


async def settle(rounds: int = 10) -> None:
    """Let queued channel events and scheduled sends run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def audio_turn(pcm: bytes = b"\x00\x10" * 240, rate: int = SAMPLE_RATE_OUTPUT) -> Turn:
    """Inbound audio turn as the live channel would report it."""
    return Turn(TurnOrigin.REMOTE, TurnKind.AUDIO, audio=pcm, mime_type=PCM_MIME_TYPE.format(rate=rate))


def control_turn(kind: TurnKind) -> Turn:
    return Turn(TurnOrigin.REMOTE, kind)


def create_mock_session_setup(job_role: str = "Backend Engineer",
                              enable_audio: bool = True,
                              enable_video: bool = True,
                              backend: Optional[MockDeviceBackend] = None,
                              client: Optional[MockLiveDialogueClient] = None,
                              records: Optional[MockInterviewRecords] = None,
                              sleeper=None,
                              interview_id: Optional[int] = 7) -> Dict[str, Any]:
    """Create a complete mock interview session for testing."""
    settings = Settings(job_role=job_role, enable_audio=enable_audio, enable_video=enable_video)
    backend = backend or MockDeviceBackend()
    client = client or MockLiveDialogueClient()
    records = records or MockInterviewRecords()
    player = MockAudioPlayer()
    event_bus = InterviewEventBus()
    recorder = EventRecorder()
    event_bus.subscribe_all(recorder.handle_event)

    # The ticker parks immediately unless the test asks for ticks
    sleeper = sleeper or StepSleeper(0)

    session = InterviewSession(
        settings,
        client,
        media=MediaAcquisition(backend),
        player=player,
        records=records,
        interview_id=interview_id,
        event_bus=event_bus,
        sleep=sleeper,
    )

    return {
        "session": session,
        "settings": settings,
        "backend": backend,
        "client": client,
        "records": records,
        "player": player,
        "event_bus": event_bus,
        "recorder": recorder,
        "sleeper": sleeper,
    }
