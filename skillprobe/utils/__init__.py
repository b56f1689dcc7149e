"""Utility modules for native-library noise suppression and logging."""

from .imports import suppressed_native_stderr, with_suppressed_audio_warnings
from .logging import setup_logging

__all__ = ["suppressed_native_stderr", "with_suppressed_audio_warnings", "setup_logging"]
