"""
SkillProbe Configuration System
===============================

This file contains ALL configuration for the SkillProbe live interview core.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the interview room
# =============================================================================

# REQUIRED (unless a backend hands out session grants): Gemini API key
GEMINI_API_KEY = None  # Prefer the GEMINI_API_KEY environment variable

# Backend that creates interview records and stores feedback
API_BASE_URL = None  # e.g. "https://skillprobe.example.com/api"
API_AUTH_TOKEN = None

# Live dialogue model
LIVE_MODEL = "gemini-2.5-flash-preview-native-audio-dialog"
LIVE_API_VERSION = "v1alpha"

# Interview defaults
JOB_ROLE = ""
VOICE_NAME = "Zephyr"
LANGUAGE_CODE = "en-US"
ENABLE_AUDIO = True
ENABLE_VIDEO = True

# Logging
LOG_FILE = "./_skillprobe/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# VOICE AND LANGUAGE OPTIONS
# =============================================================================

VOICE_OPTIONS = {
    "Zephyr": "Professional",
    "Kore": "Friendly",
    "Puck": "Energetic",
    "Charon": "Calm",
    "Fenrir": "Authoritative",
    "Aoede": "Warm",
    "Leda": "Clear",
    "Orus": "Confident",
}

LANGUAGE_OPTIONS = {
    "en-US": "English (US)",
    "en-GB": "English (UK)",
    "en-IN": "English (India)",
    "es-US": "Spanish (US)",
    "fr-FR": "French (France)",
    "de-DE": "German (Germany)",
    "pt-BR": "Portuguese (Brazil)",
    "ja-JP": "Japanese (Japan)",
    "ko-KR": "Korean (South Korea)",
    "zh-CN": "Chinese (Mandarin)",
}


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Outbound audio (what the live endpoint expects)
SAMPLE_RATE_TARGET = 16000
CHANNELS = 1
FRAME_SAMPLES = 4096
PCM_MIME_TYPE = "audio/pcm;rate={rate}"

# Inbound audio (what the live endpoint speaks)
SAMPLE_RATE_OUTPUT = 24000
PLAYBACK_BUFFER_SIZE = 1024

# Camera preview
VIDEO_WIDTH = 640
VIDEO_HEIGHT = 480

# Live session tuning
CONTEXT_TRIGGER_TOKENS = 25600
CONTEXT_TARGET_TOKENS = 12800
VAD_PREFIX_PADDING_MS = 20
VAD_SILENCE_DURATION_MS = 100
LOCAL_CLOSE_REASON = "user_initiated"
TOKEN_USES = 1
TOKEN_TTL_MINUTES = 30

# UI snapshot
RECENT_TURN_COUNT = 5

# Backend requests
API_TIMEOUT = 30


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    gemini_api_key: Optional[str] = None
    api_base_url: Optional[str] = None
    api_auth_token: Optional[str] = None
    live_model: str = LIVE_MODEL
    live_api_version: str = LIVE_API_VERSION
    job_role: str = JOB_ROLE
    voice_name: str = VOICE_NAME
    language_code: str = LANGUAGE_CODE
    enable_audio: bool = ENABLE_AUDIO
    enable_video: bool = ENABLE_VIDEO
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL
    api_timeout: int = API_TIMEOUT

    @property
    def uses_backend(self) -> bool:
        """True when interview records are created through the backend API."""
        return bool(self.api_base_url)


def get_config() -> Config:
    """Load configuration."""
    api_key = os.getenv("GEMINI_API_KEY") or GEMINI_API_KEY
    api_base_url = os.getenv("SKILLPROBE_API_URL") or API_BASE_URL
    api_auth_token = os.getenv("SKILLPROBE_API_TOKEN") or API_AUTH_TOKEN

    if not api_key and not api_base_url:
        raise ValueError(
            "Please set GEMINI_API_KEY or SKILLPROBE_API_URL in config.py or as environment variable"
        )

    return Config(
        gemini_api_key=api_key,
        api_base_url=api_base_url,
        api_auth_token=api_auth_token,
        live_model=os.getenv("SKILLPROBE_LIVE_MODEL") or LIVE_MODEL,
        log_file=os.getenv("SKILLPROBE_LOG_FILE") or LOG_FILE,
        log_level=os.getenv("SKILLPROBE_LOG_LEVEL") or LOG_LEVEL,
    )
