"""Camera and microphone acquisition."""

from .acquisition import (
    MediaAcquisition, MediaSource, LocalDeviceBackend,
    MicrophoneTrack, CameraTrack
)

__all__ = [
    "MediaAcquisition", "MediaSource", "LocalDeviceBackend",
    "MicrophoneTrack", "CameraTrack"
]
