"""Infrastructure components for SkillProbe.

This module contains the device, signal and network layers the interview
session is built on.
"""

# Audio infrastructure
from .audio import (
    AudioFrame, AudioFrameEncoder, AudioGraph, AudioPlayer, encode_frame
)

# Media acquisition
from .media import MediaAcquisition, MediaSource, LocalDeviceBackend

# Live dialogue channel
from .llm import LiveDialogueClient, LiveDialogueHandle, mint_ephemeral_token

__all__ = [
    # Audio
    "AudioFrame", "AudioFrameEncoder", "AudioGraph", "AudioPlayer", "encode_frame",

    # Media
    "MediaAcquisition", "MediaSource", "LocalDeviceBackend",

    # Live channel
    "LiveDialogueClient", "LiveDialogueHandle", "mint_ephemeral_token"
]
