"""
Error taxonomy for the live interview session.
"""
from typing import Dict, Optional


class SessionError(Exception):
    """Base class for interview session failures."""


class MediaUnavailable(SessionError):
    """No requested capture device could be opened (permission denied or absent)."""

    def __init__(self, message: str, failures: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.failures = dict(failures or {})


class ChannelOpenFailed(SessionError):
    """The live dialogue channel could not be established."""


class ChannelRuntimeError(SessionError):
    """The live dialogue channel failed after it was open."""


class EncodingFault(SessionError):
    """A captured sample buffer could not be encoded to PCM."""
