"""
Single-sink playback of the interviewer's voice.

There is exactly one output stream per session. A new clip replaces whatever
is playing; clips are never mixed or queued behind each other.
"""
import asyncio
import logging
import threading
from typing import Callable, Optional

from ...config import SAMPLE_RATE_OUTPUT, PLAYBACK_BUFFER_SIZE
from ...utils import with_suppressed_audio_warnings

logger = logging.getLogger("audio_playback")

EndedCallback = Callable[[], None]


class AudioPlayer:
    """
    Hidden playback element backed by a pyaudio callback stream.

    The PortAudio thread only copies bytes out of the current clip. When a clip
    runs out, the end notification is handed back to the event loop together
    with the clip's generation number; notifications for replaced or stopped
    clips are ignored there.
    """

    def __init__(self,
                 sample_rate: int = SAMPLE_RATE_OUTPUT,
                 buffer_size: int = PLAYBACK_BUFFER_SIZE,
                 output_device: Optional[int] = None):
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.output_device = output_device
        self._lock = threading.Lock()
        self._clip: Optional[bytes] = None
        self._pos = 0
        self._generation = 0
        self._on_ended: Optional[EndedCallback] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pa = None
        self._stream = None
        self._closed = False

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._clip is not None

    @property
    def generation(self) -> int:
        return self._generation

    def play(self, pcm: bytes, on_ended: Optional[EndedCallback] = None) -> int:
        """
        Replace the current source with a PCM16 clip and start playing it.

        Returns:
            The generation number of the new clip
        """
        if self._closed:
            raise RuntimeError("Audio player is closed")
        self._loop = asyncio.get_running_loop()
        self._ensure_stream()
        with self._lock:
            self._generation += 1
            self._clip = bytes(pcm)
            self._pos = 0
            self._on_ended = on_ended
            generation = self._generation
        logger.debug(f"Playing clip {generation} ({len(pcm)} bytes)")
        return generation

    def stop(self) -> None:
        """Silence the current clip without reporting it as ended."""
        with self._lock:
            if self._clip is not None:
                logger.debug(f"Stopped clip {self._generation}")
            self._generation += 1
            self._clip = None
            self._pos = 0
            self._on_ended = None

    def close(self) -> None:
        """Stop playback and release the output stream. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.stop()
        stream, self._stream = self._stream, None
        pa, self._pa = self._pa, None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except Exception as e:
                logger.warning(f"Error closing playback stream: {e}")
        if pa is not None:
            pa.terminate()
        logger.info("Audio player closed")

    @with_suppressed_audio_warnings
    def _ensure_stream(self) -> None:
        if self._stream is not None:
            return
        import pyaudio

        self._pa = pyaudio.PyAudio()
        self._stream = self._pa.open(
            format=pyaudio.paInt16,
            channels=1,
            rate=self.sample_rate,
            output=True,
            output_device_index=self.output_device,
            frames_per_buffer=self.buffer_size,
            stream_callback=self._callback,
        )
        self._stream.start_stream()
        logger.info(f"Opened playback stream at {self.sample_rate} Hz")

    def _callback(self, _in_data, frame_count, _time_info, _status):
        import pyaudio

        wanted = frame_count * 2
        finished_generation = None
        with self._lock:
            if self._clip is None:
                chunk = b""
            else:
                chunk = self._clip[self._pos:self._pos + wanted]
                self._pos += len(chunk)
                if self._pos >= len(self._clip):
                    finished_generation = self._generation
                    self._clip = None
        if finished_generation is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(self._finish, finished_generation)
        return chunk + b"\x00" * (wanted - len(chunk)), pyaudio.paContinue

    def _finish(self, generation: int) -> None:
        if generation != self._generation:
            return
        callback, self._on_ended = self._on_ended, None
        if callback is not None:
            callback()
