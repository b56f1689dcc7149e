"""
Data models for the live interview session.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List

from ..config import (
    VOICE_NAME, LANGUAGE_CODE, ENABLE_AUDIO, ENABLE_VIDEO,
    VOICE_OPTIONS, LANGUAGE_OPTIONS
)


class TurnOrigin(str, Enum):
    """Which side of the conversation produced a turn."""
    LOCAL = "local"
    REMOTE = "remote"


class TurnKind(str, Enum):
    """Payload kind carried by a turn."""
    AUDIO = "audio"
    TEXT = "text"
    TURN_COMPLETE = "turn_complete"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class Settings:
    """Interview settings chosen on the setup screen. Never mutated by the session."""
    job_role: str
    voice_name: str = VOICE_NAME
    language_code: str = LANGUAGE_CODE
    enable_audio: bool = ENABLE_AUDIO
    enable_video: bool = ENABLE_VIDEO

    def validate(self) -> None:
        """Raise ValueError if the settings cannot start an interview."""
        if not self.job_role.strip():
            raise ValueError("Please enter a job role")
        if self.voice_name not in VOICE_OPTIONS:
            raise ValueError(f"Unknown voice: {self.voice_name}")
        if self.language_code not in LANGUAGE_OPTIONS:
            raise ValueError(f"Unsupported language code: {self.language_code}")

    def to_payload(self) -> dict:
        return {
            "jobRole": self.job_role,
            "voiceName": self.voice_name,
            "languageCode": self.language_code,
            "enableAudio": self.enable_audio,
            "enableVideo": self.enable_video,
        }


@dataclass(frozen=True)
class Turn:
    """One unit of dialogue exchanged with the live endpoint."""
    origin: TurnOrigin
    kind: TurnKind
    audio: Optional[bytes] = None
    mime_type: Optional[str] = None
    text: Optional[str] = None

    @property
    def is_control(self) -> bool:
        return self.kind in (TurnKind.TURN_COMPLETE, TurnKind.INTERRUPTED)

    def describe(self) -> str:
        """Short human-readable line for the conversation panel."""
        if self.kind == TurnKind.TEXT:
            return self.text or ""
        if self.kind == TurnKind.AUDIO:
            return "🎵 Audio message"
        return f"[{self.kind.value}]"


@dataclass
class SessionSnapshot:
    """Read-only view of the session handed to the UI."""
    phase: str
    connection: str
    is_recording: bool
    is_speaking: bool
    duration: int
    duration_display: str
    message_count: int
    recent_turns: List[Turn] = field(default_factory=list)
    error: Optional[str] = None
    audio_level: float = 0.0
