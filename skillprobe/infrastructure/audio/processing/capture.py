"""
Audio processing graph: microphone track -> normalisation -> encoder node.
"""
import logging
from typing import Optional

import numpy as np

from ....config import SAMPLE_RATE_TARGET
from .encoder import AudioFrameEncoder
from .processing import normalize_block, rms_level

logger = logging.getLogger("audio_capture")


class AudioGraph:
    """
    Wires a live microphone track into the frame encoder.

    Blocks arrive on the event loop (the track hops them over from the device
    thread). Each one is brought to mono at the target rate, metered for the
    level display, and pushed into the encoder.
    """

    def __init__(self, track, encoder: AudioFrameEncoder, target_rate: int = SAMPLE_RATE_TARGET):
        self.track = track
        self.encoder = encoder
        self.target_rate = target_rate
        self.level = 0.0
        self.blocks_seen = 0
        self._closed = False
        track.subscribe(self._on_block)
        logger.info(
            f"Audio graph wired: {track.sample_rate} Hz x{track.channels} -> {target_rate} Hz mono"
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_block(self, block: np.ndarray) -> None:
        if self._closed:
            return
        self.blocks_seen += 1
        try:
            mono = normalize_block(block, self.track.sample_rate, self.target_rate)
        except ValueError as e:
            logger.debug(f"Skipping unreadable capture block: {e}")
            return
        self.level = rms_level(mono)
        self.encoder.process(mono)

    def close(self) -> None:
        """Detach from the track. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.level = 0.0
        self.track.unsubscribe(self._on_block)
        logger.info(f"Audio graph closed after {self.blocks_seen} blocks")


def build_audio_graph(track, encoder: AudioFrameEncoder) -> Optional[AudioGraph]:
    """Return a graph for the track, or None when there is no microphone."""
    if track is None:
        return None
    return AudioGraph(track, encoder)
