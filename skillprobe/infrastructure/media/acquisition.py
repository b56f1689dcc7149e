"""
Camera and microphone acquisition for the interview room.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from ...config import (
    SAMPLE_RATE_TARGET, CHANNELS, FRAME_SAMPLES, VIDEO_WIDTH, VIDEO_HEIGHT
)
from ...interview.errors import MediaUnavailable
from ...utils import with_suppressed_audio_warnings

logger = logging.getLogger("media")

BlockHandler = Callable[[np.ndarray], None]


class MicrophoneTrack:
    """
    Live microphone track. Blocks are delivered to subscribers on the event loop.

    Subclasses own the device; this base class only fans blocks out.
    """
    kind = "audio"

    def __init__(self, sample_rate: int, channels: int, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        self._loop = loop
        self._subscribers: List[BlockHandler] = []
        self._live = True

    @property
    def live(self) -> bool:
        return self._live

    def subscribe(self, handler: BlockHandler) -> None:
        self._subscribers.append(handler)

    def unsubscribe(self, handler: BlockHandler) -> None:
        try:
            self._subscribers.remove(handler)
        except ValueError:
            pass

    def _deliver(self, block: np.ndarray) -> None:
        if not self._live:
            return
        for handler in list(self._subscribers):
            handler(block)

    def _deliver_threadsafe(self, block: np.ndarray) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._deliver, block)

    def stop(self) -> None:
        """Stop capturing. Stopping twice is a no-op."""
        if not self._live:
            return
        self._live = False
        self._subscribers.clear()
        self._release()

    def _release(self) -> None:
        pass


class CameraTrack:
    """Live camera track used for the local preview."""
    kind = "video"

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._live = True

    @property
    def live(self) -> bool:
        return self._live

    def read_frame(self) -> Optional[np.ndarray]:
        return None

    def stop(self) -> None:
        """Stop the camera. Stopping twice is a no-op."""
        if not self._live:
            return
        self._live = False
        self._release()

    def _release(self) -> None:
        pass


class PyAudioMicrophoneTrack(MicrophoneTrack):
    """Microphone captured through a pyaudio callback stream."""

    def __init__(self, pa, stream_kwargs: Dict, sample_rate: int, channels: int,
                 loop: asyncio.AbstractEventLoop):
        super().__init__(sample_rate, channels, loop)
        import pyaudio

        self._pa = pa
        self._stream = pa.open(
            format=pyaudio.paFloat32,
            channels=channels,
            rate=sample_rate,
            input=True,
            stream_callback=self._callback,
            **stream_kwargs
        )
        self._stream.start_stream()

    def _callback(self, in_data, frame_count, _time_info, status):
        import pyaudio

        if status:
            logger.debug(f"Microphone status flags: {status}")
        block = np.frombuffer(in_data, dtype=np.float32).reshape(-1, self.channels).copy()
        self._deliver_threadsafe(block)
        return None, pyaudio.paContinue

    def _release(self) -> None:
        try:
            self._stream.stop_stream()
            self._stream.close()
        finally:
            self._pa.terminate()
        logger.info("Microphone released")


class OpenCVCameraTrack(CameraTrack):
    """Camera captured through cv2.VideoCapture."""

    def __init__(self, capture, width: int, height: int):
        super().__init__(width, height)
        self._capture = capture
        self._frame_lock = threading.Lock()

    def read_frame(self) -> Optional[np.ndarray]:
        if not self._live:
            return None
        with self._frame_lock:
            ok, frame = self._capture.read()
        return frame if ok else None

    def _release(self) -> None:
        with self._frame_lock:
            self._capture.release()
        logger.info("Camera released")


class LocalDeviceBackend:
    """Opens the machine's default microphone (pyaudio) and camera (OpenCV)."""

    def __init__(self, input_device: Optional[int] = None, camera_index: int = 0):
        self.input_device = input_device
        self.camera_index = camera_index

    @with_suppressed_audio_warnings
    def open_microphone(self, loop: asyncio.AbstractEventLoop,
                        sample_rate: int = SAMPLE_RATE_TARGET,
                        block_size: int = FRAME_SAMPLES,
                        channels: int = CHANNELS) -> MicrophoneTrack:
        """
        Open the input device. Falls back to the device's own rate when it
        refuses the requested one; the audio graph resamples.
        """
        import pyaudio

        pa = pyaudio.PyAudio()
        try:
            info = (pa.get_device_info_by_index(self.input_device)
                    if self.input_device is not None
                    else pa.get_default_input_device_info())
        except (IOError, OSError) as e:
            pa.terminate()
            raise OSError(f"No microphone available: {e}") from e

        device_index = int(info["index"])
        max_channels = int(info.get("maxInputChannels", 0))
        if max_channels < 1:
            pa.terminate()
            raise OSError(f"Device {info.get('name')} has no input channels")
        channels = min(channels, max_channels)

        rate = sample_rate
        try:
            pa.is_format_supported(rate, input_device=device_index,
                                   input_channels=channels, input_format=pyaudio.paFloat32)
        except ValueError:
            rate = int(info.get("defaultSampleRate", 48000))
            logger.info(f"Device refused {sample_rate} Hz, capturing at {rate} Hz")

        logger.info(f"Opening microphone '{info.get('name')}' ({channels} ch @ {rate} Hz)")
        try:
            return PyAudioMicrophoneTrack(
                pa,
                {"input_device_index": device_index,
                 "frames_per_buffer": block_size * rate // sample_rate},
                rate, channels, loop
            )
        except Exception:
            pa.terminate()
            raise

    def open_camera(self, width: int = VIDEO_WIDTH, height: int = VIDEO_HEIGHT) -> CameraTrack:
        import cv2

        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise OSError(f"Camera {self.camera_index} is not available")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        logger.info(f"Opened camera {self.camera_index} at {width}x{height}")
        return OpenCVCameraTrack(capture, width, height)


@dataclass
class MediaSource:
    """The live device handles acquired for one session."""
    audio: Optional[MicrophoneTrack] = None
    video: Optional[CameraTrack] = None
    failures: Dict[str, str] = field(default_factory=dict)

    def tracks(self) -> list:
        return [t for t in (self.audio, self.video) if t is not None and t.live]

    def stop_all(self) -> List[str]:
        """
        Stop every live track. A track that fails to stop does not keep the
        others alive.

        Returns:
            Error descriptions for tracks that failed to stop
        """
        errors = []
        for track in self.tracks():
            try:
                track.stop()
            except Exception as e:
                logger.warning(f"Error stopping {track.kind} track: {e}")
                errors.append(f"{track.kind}: {e}")
        return errors


class MediaAcquisition:
    """Requests the media enabled in the interview settings."""

    def __init__(self, backend=None):
        self.backend = backend or LocalDeviceBackend()

    async def acquire(self, enable_audio: bool, enable_video: bool) -> MediaSource:
        """
        Open the requested devices concurrently.

        A medium that is not enabled is never requested. If some but not all
        requested media open, the source carries the ones that did and the
        failure reasons for the rest.

        Raises:
            MediaUnavailable: If media were requested and none could be opened
        """
        loop = asyncio.get_running_loop()
        requests = {}
        if enable_audio:
            requests["audio"] = asyncio.to_thread(self.backend.open_microphone, loop)
        if enable_video:
            requests["video"] = asyncio.to_thread(self.backend.open_camera)

        if not requests:
            logger.info("No media requested")
            return MediaSource()

        # A device open already running in a worker thread cannot be
        # interrupted, so a cancelled acquire waits for it and stops it
        opening = asyncio.gather(*requests.values(), return_exceptions=True)
        try:
            results = await asyncio.shield(opening)
        except asyncio.CancelledError:
            leftovers = _collect(requests.keys(), await opening)
            logger.info(f"Acquisition cancelled, stopping {len(leftovers.tracks())} opened track(s)")
            leftovers.stop_all()
            raise

        source = _collect(requests.keys(), results)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                source.stop_all()
                raise result
        for kind, result in zip(requests.keys(), results):
            if isinstance(result, Exception):
                logger.warning(f"Could not acquire {kind}: {result}")
                source.failures[kind] = str(result) or type(result).__name__

        if not source.tracks():
            details = "; ".join(f"{k}: {v}" for k, v in source.failures.items())
            raise MediaUnavailable(f"Could not access camera or microphone ({details})",
                                   source.failures)

        if source.failures:
            logger.info(f"Continuing with partial media, missing: {sorted(source.failures)}")
        return source


def _collect(kinds, results) -> MediaSource:
    """Attach every track that opened; failures are left to the caller."""
    source = MediaSource()
    for kind, result in zip(kinds, results):
        if not isinstance(result, BaseException):
            setattr(source, kind, result)
    return source
