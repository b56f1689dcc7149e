"""
Audio capture processing and playback for SkillProbe.

- processing: normalisation, PCM16 frame encoding and the capture graph
- playback: single-sink output of the interviewer's voice
"""

from .processing import AudioFrame, AudioFrameEncoder, AudioGraph, encode_frame
from .playback import AudioPlayer

__all__ = [
    "AudioFrame",
    "AudioFrameEncoder",
    "AudioGraph",
    "AudioPlayer",
    "encode_frame"
]
