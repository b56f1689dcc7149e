"""
Float audio to 16-bit PCM frame encoding for the live dialogue channel.
"""
import base64
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from ....config import PCM_MIME_TYPE, SAMPLE_RATE_TARGET
from ....interview.errors import EncodingFault

logger = logging.getLogger("audio_encoder")


@dataclass(frozen=True)
class AudioFrame:
    """One outbound chunk of little-endian PCM16 mono audio."""
    pcm: bytes
    sample_rate: int = SAMPLE_RATE_TARGET

    @property
    def mime_type(self) -> str:
        return PCM_MIME_TYPE.format(rate=self.sample_rate)

    @property
    def data(self) -> str:
        """Base64 text of the PCM bytes, as carried on the wire."""
        return base64.b64encode(self.pcm).decode("ascii")

    @property
    def sample_count(self) -> int:
        return len(self.pcm) // 2

    def to_wire(self) -> Dict[str, str]:
        return {"data": self.data, "mimeType": self.mime_type}


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """
    Map float samples to int16.

    Samples are clamped to [-1, 1]. Negative values scale by 0x8000 and the
    rest by 0x7FFF, then truncate toward zero, so -1.0 -> -32768 and
    1.0 -> 32767. The remote decoder expects exactly this mapping.
    """
    clamped = np.clip(np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0), -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * 0x8000, clamped * 0x7FFF)
    return np.trunc(scaled).astype(np.int16)


def encode_frame(samples, sample_rate: int = SAMPLE_RATE_TARGET) -> AudioFrame:
    """
    Encode one block of float samples into an AudioFrame.

    Raises:
        EncodingFault: If the buffer is empty, not numeric, or not one channel
    """
    try:
        block = np.asarray(samples, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise EncodingFault(f"Sample buffer is not numeric: {e}") from e
    if block.ndim != 1:
        raise EncodingFault(f"Expected a mono sample buffer, got shape {block.shape}")
    if block.size == 0:
        raise EncodingFault("Sample buffer is empty")

    pcm = float_to_pcm16(block).astype("<i2").tobytes()
    return AudioFrame(pcm=pcm, sample_rate=sample_rate)


class AudioFrameEncoder:
    """
    Push node between the capture graph and the live channel.

    Every block is either encoded and handed to the sink right away or
    dropped. Nothing is queued: audio captured while not recording, or while
    the channel is not ready, is stale by the time it could be sent.
    """

    def __init__(self,
                 is_recording: Callable[[], bool],
                 sink: Optional[Callable[[AudioFrame], None]] = None,
                 sample_rate: int = SAMPLE_RATE_TARGET):
        self._is_recording = is_recording
        self._sink = sink
        self.sample_rate = sample_rate
        self.frames_sent = 0
        self.frames_dropped = 0

    @property
    def connected(self) -> bool:
        return self._sink is not None

    def connect(self, sink: Callable[[AudioFrame], None]) -> None:
        self._sink = sink

    def disconnect(self) -> None:
        """Detach from the channel. Later blocks are ignored."""
        self._sink = None

    def process(self, samples) -> Optional[AudioFrame]:
        """Encode and dispatch one captured block. Returns the frame sent, if any."""
        sink = self._sink
        if sink is None or not self._is_recording():
            self.frames_dropped += 1
            return None

        try:
            frame = encode_frame(samples, self.sample_rate)
        except EncodingFault as e:
            logger.debug(f"Dropping malformed audio block: {e}")
            self.frames_dropped += 1
            return None

        sink(frame)
        self.frames_sent += 1
        return frame
