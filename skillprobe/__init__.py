"""
SkillProbe: live voice interview practice against a real-time AI interviewer.

The interview session streams microphone audio to a live speech model, plays
the interviewer's voice back, and hands end-of-interview feedback to the
backend that owns the interview record.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.session import InterviewSession, format_duration
from .interview.models import Settings, Turn

__all__ = ["InterviewSession", "Settings", "Turn", "format_duration"]
