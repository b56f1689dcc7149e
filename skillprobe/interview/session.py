"""
Live interview session controller.

The session owns the connection, recording and speaking flags, the turn log
and the duration counter, and mediates between media acquisition, the frame
encoder and the live dialogue channel.

Everything runs on one asyncio event loop. Device and channel callbacks reach
the session as events on that loop, so state changes need ordering, not locks.
"""
import asyncio
import logging
import re
import time
from typing import Callable, List, Optional

from ..config import (
    SAMPLE_RATE_OUTPUT, LOCAL_CLOSE_REASON, RECENT_TURN_COUNT
)
from ..infrastructure.audio.playback import AudioPlayer
from ..infrastructure.audio.processing.capture import AudioGraph
from ..infrastructure.audio.processing.encoder import AudioFrameEncoder, float_to_pcm16
from ..infrastructure.audio.processing.processing import pcm16_to_float32, resample
from ..infrastructure.media import MediaAcquisition, MediaSource
from .errors import ChannelOpenFailed, ChannelRuntimeError
from .events import (
    ChannelEvent, ChannelEventKind, InterviewEventBus,
    SessionStartedEvent, StateChangedEvent, RecordingToggledEvent,
    TurnReceivedEvent, SessionEndedEvent, SessionErroredEvent, NoticeEvent
)
from .feedback import FeedbackPolicy, PlaceholderFeedbackPolicy
from .lifecycle import SessionResources
from .models import Settings, Turn, TurnKind, SessionSnapshot
from .prompts import build_system_prompt
from .schemas import ConnectionStatus, InterviewFeedback, SessionPhase

logger = logging.getLogger("session")

_RATE_PATTERN = re.compile(r"rate=(\d+)")


def format_duration(seconds: int) -> str:
    """Render elapsed seconds as MM:SS."""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"


class InterviewSession:
    """
    State machine for one live interview.

    Phases: idle -> initializing -> active -> ending -> idle, with errored
    reachable from initializing or active. A session is started at most once.
    """

    def __init__(self,
                 settings: Settings,
                 dialogue_client,
                 media: Optional[MediaAcquisition] = None,
                 player: Optional[AudioPlayer] = None,
                 records=None,
                 interview_id: Optional[int] = None,
                 feedback_policy: Optional[FeedbackPolicy] = None,
                 event_bus: Optional[InterviewEventBus] = None,
                 sleep: Callable = asyncio.sleep):
        settings.validate()
        self.settings = settings
        self.dialogue_client = dialogue_client
        self.media = media or MediaAcquisition()
        self.player = player or AudioPlayer()
        self.records = records
        self.interview_id = interview_id
        self.feedback_policy = feedback_policy or PlaceholderFeedbackPolicy()
        self.event_bus = event_bus or InterviewEventBus()
        self._sleep = sleep

        # Visible state
        self.phase = SessionPhase.IDLE
        self.connection = ConnectionStatus.DISCONNECTED
        self.close_reason: Optional[str] = None
        self.is_recording = False
        self.is_speaking = False
        self.duration = 0
        self.turns: List[Turn] = []
        self.current_turn: List[Turn] = []
        self.error: Optional[str] = None
        self.feedback: Optional[InterviewFeedback] = None

        self._resources = SessionResources()
        self._events: Optional[asyncio.Queue] = None
        self._settled: Optional[asyncio.Event] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._ticker_task: Optional[asyncio.Task] = None
        self._teardown_task: Optional[asyncio.Future] = None
        self._end_task: Optional[asyncio.Future] = None
        self._dispatching = False
        self._started = False

    async def __aenter__(self) -> "InterviewSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.teardown()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def torn_down(self) -> bool:
        return self._teardown_task is not None

    @property
    def audio_level(self) -> float:
        graph = self._resources.graph
        return graph.level if graph is not None and self.is_recording else 0.0

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            phase=self.phase.value,
            connection=self.connection.value,
            is_recording=self.is_recording,
            is_speaking=self.is_speaking,
            duration=self.duration,
            duration_display=format_duration(self.duration),
            message_count=len(self.turns),
            recent_turns=self.turns[-RECENT_TURN_COUNT:],
            error=self.error,
            audio_level=self.audio_level,
        )

    # ------------------------------------------------------------------
    # Control actions
    # ------------------------------------------------------------------

    async def start(self) -> SessionSnapshot:
        """
        Acquire media and open the live channel, concurrently.

        Returns once the session is active or has failed; failures are
        reported through the session state and the event bus, not raised.

        Raises:
            RuntimeError: If the session was already started
        """
        if self._started:
            raise RuntimeError("Interview session can only be started once")
        self._started = True
        self._events = asyncio.Queue()
        self._settled = asyncio.Event()

        self.phase = SessionPhase.INITIALIZING
        self.connection = ConnectionStatus.CONNECTING
        self._resources.player = self.player
        logger.info(f"Starting interview session for {self.settings.job_role}")
        self._publish()

        setup = asyncio.gather(
            self.media.acquire(self.settings.enable_audio, self.settings.enable_video),
            self.dialogue_client.open(self.settings, self._events),
            return_exceptions=True,
        )
        try:
            media_result, channel_result = await asyncio.shield(setup)
        except asyncio.CancelledError:
            # Devices may still be opening in worker threads; wait for them
            # so nothing outlives the cancelled start
            logger.info("Start cancelled; releasing whatever finishes opening")
            await self._release_late(*(await setup))
            await self.teardown()
            raise

        if self.torn_down:
            # Left the room while devices were still opening
            await self._release_late(media_result, channel_result)
            return self.snapshot()

        if not isinstance(media_result, BaseException):
            self._resources.media = media_result
        if not isinstance(channel_result, BaseException):
            self._resources.channel = channel_result

        for result in (media_result, channel_result):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    await self.teardown()
                    raise result
                await self._fail(result)
                return self.snapshot()

        self._wire_audio(media_result)
        self._pump_task = asyncio.create_task(self._pump(), name="interview-events")
        await self._settled.wait()
        return self.snapshot()

    def toggle_recording(self) -> bool:
        """
        Flip the microphone gate. Only allowed while connected; the live
        channel itself is not touched.

        Returns:
            True if the flag changed
        """
        if self.connection != ConnectionStatus.CONNECTED:
            logger.debug("Ignoring recording toggle while not connected")
            return False

        self.is_recording = not self.is_recording
        logger.info(f"Recording {'started' if self.is_recording else 'stopped'}")
        self.event_bus.emit(RecordingToggledEvent(time.time(), self.is_recording))
        if self.is_recording:
            self._notify("success", "Recording started")
        else:
            self._notify("info", "Recording stopped")
        self._publish()
        return True

    async def end(self) -> Optional[InterviewFeedback]:
        """
        End the interview: tear down, synthesize feedback, hand it to the
        persistence collaborator. Overlapping calls share one ending.

        Returns:
            The feedback, or None if there was no active interview to end
        """
        if self._end_task is not None and not self._end_task.done():
            return await asyncio.shield(self._end_task)
        if self.phase != SessionPhase.ACTIVE:
            logger.info(f"End requested while {self.phase.value}; nothing to end")
            return None

        self.phase = SessionPhase.ENDING
        self._publish()
        self._end_task = asyncio.ensure_future(self._end())
        return await asyncio.shield(self._end_task)

    async def back(self) -> None:
        """Leave the room without feedback."""
        await self.teardown()
        if self.phase != SessionPhase.ENDING:
            self.phase = SessionPhase.IDLE
            self._publish()

    async def teardown(self) -> None:
        """
        Release every acquired resource. Safe from any phase, any number of
        times; overlapping calls wait for the same teardown.
        """
        if self._teardown_task is None:
            self._teardown_task = asyncio.ensure_future(self._teardown())
        await asyncio.shield(self._teardown_task)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _wire_audio(self, media: MediaSource) -> None:
        if not self.settings.enable_audio or media.audio is None:
            return
        channel = self._resources.channel
        encoder = AudioFrameEncoder(is_recording=self._may_stream, sink=channel.send_audio_chunk)
        self._resources.encoder = encoder
        self._resources.graph = AudioGraph(media.audio, encoder)

    def _may_stream(self) -> bool:
        return self.is_recording and self.connection == ConnectionStatus.CONNECTED

    async def _pump(self) -> None:
        while not self._resources.released:
            event = await self._events.get()
            self._dispatching = True
            try:
                await self._dispatch(event)
            finally:
                self._dispatching = False

    async def _dispatch(self, event: ChannelEvent) -> None:
        if event.kind == ChannelEventKind.OPEN:
            self._on_open()
        elif event.kind == ChannelEventKind.TURN:
            self._on_turn(event.turn)
        elif event.kind == ChannelEventKind.ERROR:
            await self._on_channel_error(event.reason or "unknown error")
        elif event.kind == ChannelEventKind.CLOSE:
            await self._on_channel_close(event.reason or "")

    def _on_open(self) -> None:
        if self.phase != SessionPhase.INITIALIZING:
            return
        self.phase = SessionPhase.ACTIVE
        self.connection = ConnectionStatus.CONNECTED
        logger.info("Live channel open; interview active")
        self._start_ticker()
        self._resources.channel.send_text_turn(build_system_prompt(self.settings))
        self.event_bus.emit(SessionStartedEvent(time.time(), self.settings.job_role))
        self._notify("success", "Interview session started!")
        self._settled.set()
        self._publish()

    def _on_turn(self, turn: Turn) -> None:
        self.turns.append(turn)
        self.current_turn.append(turn)
        self.event_bus.emit(TurnReceivedEvent(time.time(), turn, len(self.turns) - 1))

        if turn.kind == TurnKind.AUDIO:
            self._play(turn)
        elif turn.kind == TurnKind.TEXT:
            logger.info(f"AI Response: {turn.text}")
        elif turn.kind == TurnKind.TURN_COMPLETE:
            self.current_turn.clear()
        elif turn.kind == TurnKind.INTERRUPTED:
            self.is_speaking = False
            if self._resources.player is not None:
                self._resources.player.stop()
        self._publish()

    def _play(self, turn: Turn) -> None:
        player = self._resources.player
        if player is None:
            return
        try:
            pcm = self._pcm_for_player(turn, player.sample_rate)
            player.play(pcm, on_ended=self._on_playback_ended)
        except Exception as e:
            logger.warning(f"Could not play interviewer audio: {e}")
            return
        self.is_speaking = True

    @staticmethod
    def _pcm_for_player(turn: Turn, player_rate: int) -> bytes:
        match = _RATE_PATTERN.search(turn.mime_type or "")
        rate = int(match.group(1)) if match else SAMPLE_RATE_OUTPUT
        if rate == player_rate:
            return turn.audio
        samples = resample(pcm16_to_float32(turn.audio), rate, player_rate)
        return float_to_pcm16(samples).astype("<i2").tobytes()

    def _on_playback_ended(self) -> None:
        self.is_speaking = False
        self._publish()

    async def _on_channel_error(self, reason: str) -> None:
        if self.phase == SessionPhase.INITIALIZING:
            await self._fail(ChannelOpenFailed(reason))
        elif self.phase == SessionPhase.ACTIVE:
            await self._fail(ChannelRuntimeError(reason))
        else:
            logger.debug(f"Ignoring channel error while {self.phase.value}: {reason}")

    async def _on_channel_close(self, reason: str) -> None:
        self.close_reason = reason
        if reason == LOCAL_CLOSE_REASON or self.phase not in (SessionPhase.INITIALIZING, SessionPhase.ACTIVE):
            self.connection = ConnectionStatus.CLOSED
            self.is_recording = False
            self._cancel_ticker()
            self._publish()
            return
        await self._fail(ChannelRuntimeError(f"closed by server ({reason or 'no reason given'})"))

    async def _fail(self, exc: Exception) -> None:
        during_setup = self.phase == SessionPhase.INITIALIZING
        self.phase = SessionPhase.ERRORED
        if during_setup:
            self.error = f"Failed to start interview session: {exc}"
            notice = "Failed to start interview session"
        else:
            self.error = f"Session error: {exc}"
            notice = "Interview session ended unexpectedly"
        logger.error(f"{type(exc).__name__}: {exc}")
        self.event_bus.emit(SessionErroredEvent(time.time(), type(exc).__name__, self.error))
        self._notify("error", notice)
        await self.teardown()

    async def _end(self) -> InterviewFeedback:
        duration = self.duration
        turns = list(self.turns)

        await self.teardown()

        feedback = self.feedback_policy.synthesize(self.settings, turns, duration)
        self.feedback = feedback
        persisted = await self._deliver_feedback(feedback)

        self.phase = SessionPhase.IDLE
        self.event_bus.emit(SessionEndedEvent(time.time(), duration, len(turns), persisted))
        self._publish()
        return feedback

    async def _deliver_feedback(self, feedback: InterviewFeedback) -> bool:
        if self.records is None or self.interview_id is None:
            logger.info("No persistence collaborator configured; feedback kept locally")
            return False
        try:
            await self.records.complete_interview(self.interview_id, feedback)
        except Exception as e:
            logger.error(f"Failed to complete interview {self.interview_id}: {e}")
            self._notify("error", f"Failed to complete interview: {e}")
            return False
        self._notify("success", "Interview completed successfully!")
        return True

    async def _teardown(self) -> None:
        self._cancel_ticker()
        await self._resources.release()
        self.connection = ConnectionStatus.DISCONNECTED
        self.is_recording = False
        self.is_speaking = False

        pump = self._pump_task
        if pump is not None and not pump.done() and not self._dispatching:
            pump.cancel()
        if self._settled is not None:
            self._settled.set()
        self._publish()

    async def _release_late(self, media_result, channel_result) -> None:
        leftovers = SessionResources()
        if not isinstance(media_result, BaseException):
            leftovers.media = media_result
        if not isinstance(channel_result, BaseException):
            leftovers.channel = channel_result
        await leftovers.release()

    def _start_ticker(self) -> None:
        if self._ticker_task is None:
            self._ticker_task = asyncio.create_task(self._tick(), name="interview-duration")

    def _cancel_ticker(self) -> None:
        ticker, self._ticker_task = self._ticker_task, None
        if ticker is not None and not ticker.done():
            ticker.cancel()

    async def _tick(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            deadline += 1.0
            await self._sleep(max(0.0, deadline - loop.time()))
            if self.connection == ConnectionStatus.CONNECTED:
                self.duration += 1
                self._publish()

    def _notify(self, level: str, message: str) -> None:
        self.event_bus.emit(NoticeEvent(time.time(), level, message))

    def _publish(self) -> None:
        self.event_bus.emit(StateChangedEvent(time.time(), self.snapshot()))
