"""Audio processing, frame encoding and the capture graph."""

from .processing import (
    stereo_to_mono,
    resample,
    normalize_block,
    rms_level,
    pcm16_to_float32
)
from .encoder import AudioFrame, AudioFrameEncoder, encode_frame, float_to_pcm16
from .capture import AudioGraph, build_audio_graph

__all__ = [
    "AudioFrame",
    "AudioFrameEncoder",
    "AudioGraph",
    "build_audio_graph",
    "encode_frame",
    "float_to_pcm16",
    "stereo_to_mono",
    "resample",
    "normalize_block",
    "rms_level",
    "pcm16_to_float32"
]
