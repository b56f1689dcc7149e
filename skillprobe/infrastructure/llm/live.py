"""
Live dialogue channel to the Gemini Live API.

The channel reports everything it sees as tagged ChannelEvents on an
asyncio.Queue owned by the session. Outbound sends are fire-and-forget: a
failed send is logged and dropped, never retried.
"""
import asyncio
import base64
import binascii
import logging
from contextlib import AsyncExitStack
from functools import partial
from typing import List, Optional, Set

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from ...config import (
    LIVE_MODEL, LIVE_API_VERSION, LOCAL_CLOSE_REASON,
    CONTEXT_TRIGGER_TOKENS, CONTEXT_TARGET_TOKENS,
    VAD_PREFIX_PADDING_MS, VAD_SILENCE_DURATION_MS
)
from ...interview.errors import ChannelOpenFailed
from ...interview.events import ChannelEvent
from ...interview.models import Settings, Turn, TurnKind, TurnOrigin
from ..audio.processing.encoder import AudioFrame

logger = logging.getLogger("live_channel")


def turns_from_message(message: types.LiveServerMessage) -> List[Turn]:
    """
    Convert one server message into turns, in order: audio and text parts,
    then interruption, then turn completion. Messages without conversation
    content (setup acks, usage reports) yield nothing.
    """
    turns: List[Turn] = []
    content = message.server_content
    if content is None:
        return turns

    if content.model_turn and content.model_turn.parts:
        for part in content.model_turn.parts:
            if part.inline_data is not None and part.inline_data.data:
                turn = _audio_turn(part.inline_data)
                if turn is not None:
                    turns.append(turn)
            elif part.text:
                turns.append(Turn(TurnOrigin.REMOTE, TurnKind.TEXT, text=part.text))

    if content.interrupted:
        turns.append(Turn(TurnOrigin.REMOTE, TurnKind.INTERRUPTED))
    if content.turn_complete:
        turns.append(Turn(TurnOrigin.REMOTE, TurnKind.TURN_COMPLETE))
    return turns


def _audio_turn(blob: types.Blob) -> Optional[Turn]:
    mime_type = blob.mime_type or ""
    if not mime_type.startswith("audio/"):
        logger.debug(f"Ignoring inline data of type {mime_type!r}")
        return None
    data = blob.data
    if isinstance(data, str):
        try:
            data = base64.b64decode(data, validate=True)
        except binascii.Error as e:
            logger.warning(f"Dropping audio part with bad base64 payload: {e}")
            return None
    return Turn(TurnOrigin.REMOTE, TurnKind.AUDIO, audio=bytes(data), mime_type=mime_type)


class LiveDialogueHandle:
    """An open live session. Owned by exactly one InterviewSession."""

    def __init__(self, session, exit_stack: AsyncExitStack, events: asyncio.Queue):
        self._session = session
        self._stack = exit_stack
        self._events = events
        self._pending: Set[asyncio.Task] = set()
        self._receiver: Optional[asyncio.Task] = None
        self._closed = False
        self._close_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Report the channel open and begin reading server messages."""
        self._events.put_nowait(ChannelEvent.opened())
        self._receiver = asyncio.create_task(self._receive_loop(), name="live-receive")

    def send_audio_chunk(self, frame: AudioFrame) -> None:
        if self._closed:
            return
        blob = types.Blob(data=frame.pcm, mime_type=frame.mime_type)
        self._spawn(self._session.send_realtime_input(audio=blob), "audio")

    def send_text_turn(self, text: str) -> None:
        if self._closed:
            return
        content = types.Content(role="user", parts=[types.Part(text=text)])
        self._spawn(self._session.send_client_content(turns=content, turn_complete=True), "text")

    async def close(self, reason: str = LOCAL_CLOSE_REASON) -> None:
        """Close the channel. Concurrent and repeated calls share one close."""
        if self._close_task is None:
            self._close_task = asyncio.ensure_future(self._close(reason))
        await asyncio.shield(self._close_task)

    async def _close(self, reason: str) -> None:
        self._closed = True
        tasks = [t for t in self._pending if not t.done()]
        if self._receiver is not None and self._receiver is not asyncio.current_task():
            tasks.append(self._receiver)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        try:
            await self._stack.aclose()
        except Exception as e:
            logger.warning(f"Error while closing live session: {e}")
        logger.info(f"Live channel closed ({reason})")
        self._events.put_nowait(ChannelEvent.closed(reason))

    def _spawn(self, coro, label: str) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(partial(self._on_sent, label))

    def _on_sent(self, label: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Dropped {label} send: {exc}")

    async def _receive_loop(self) -> None:
        try:
            while not self._closed:
                received = 0
                # receive() stops after each completed model turn
                async for message in self._session.receive():
                    received += 1
                    if message.go_away is not None:
                        logger.warning(f"Server will close the session in {message.go_away.time_left}")
                    for turn in turns_from_message(message):
                        self._events.put_nowait(ChannelEvent.received(turn))
                if received == 0:
                    self._report_remote_close("")
                    return
        except asyncio.CancelledError:
            raise
        except ConnectionClosedOK as e:
            self._report_remote_close(e.rcvd.reason if e.rcvd else "")
        except ConnectionClosed as e:
            self._report_failure(f"Connection lost: {e}")
        except Exception as e:
            self._report_failure(f"{type(e).__name__}: {e}")

    def _report_remote_close(self, reason: str) -> None:
        if self._closed:
            return
        logger.info(f"Live channel closed by server: {reason or '(no reason)'}")
        self._events.put_nowait(ChannelEvent.closed(reason))

    def _report_failure(self, reason: str) -> None:
        if self._closed:
            return
        logger.error(f"Live channel error: {reason}")
        self._events.put_nowait(ChannelEvent.failed(reason))
        self._events.put_nowait(ChannelEvent.closed(reason))


class LiveDialogueClient:
    """Opens live sessions with an ephemeral token."""

    def __init__(self, token: str, model: str = LIVE_MODEL, api_version: str = LIVE_API_VERSION):
        if not token:
            raise ValueError("A session token is required to open the live channel")
        self.token = token
        self.model = model
        self.api_version = api_version

    def build_config(self, settings: Settings) -> types.LiveConnectConfig:
        """Live session configuration for the given interview settings."""
        return types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            media_resolution=types.MediaResolution.MEDIA_RESOLUTION_MEDIUM,
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=settings.voice_name)
                ),
                language_code=settings.language_code,
            ),
            context_window_compression=types.ContextWindowCompressionConfig(
                trigger_tokens=CONTEXT_TRIGGER_TOKENS,
                sliding_window=types.SlidingWindow(target_tokens=CONTEXT_TARGET_TOKENS),
            ),
            realtime_input_config=types.RealtimeInputConfig(
                automatic_activity_detection=types.AutomaticActivityDetection(
                    disabled=False,
                    start_of_speech_sensitivity=types.StartSensitivity.START_SENSITIVITY_LOW,
                    end_of_speech_sensitivity=types.EndSensitivity.END_SENSITIVITY_LOW,
                    prefix_padding_ms=VAD_PREFIX_PADDING_MS,
                    silence_duration_ms=VAD_SILENCE_DURATION_MS,
                )
            ),
        )

    async def open(self, settings: Settings, events: asyncio.Queue) -> LiveDialogueHandle:
        """
        Connect and return an open handle. The OPEN event is queued before
        this returns.

        Raises:
            ChannelOpenFailed: If the connection cannot be established
        """
        client = genai.Client(api_key=self.token, http_options={"api_version": self.api_version})
        stack = AsyncExitStack()
        logger.info(f"Connecting to live model {self.model}")
        try:
            session = await stack.enter_async_context(
                client.aio.live.connect(model=self.model, config=self.build_config(settings))
            )
        except asyncio.CancelledError:
            await stack.aclose()
            raise
        except Exception as e:
            await stack.aclose()
            raise ChannelOpenFailed(f"Could not connect to {self.model}: {e}") from e

        handle = LiveDialogueHandle(session, stack, events)
        handle.start()
        return handle
