"""
Ephemeral token minting for live interview sessions.
"""
import logging
from datetime import datetime, timedelta, timezone

from google import genai

from ...config import LIVE_MODEL, LIVE_API_VERSION, TOKEN_USES, TOKEN_TTL_MINUTES
from ...interview.models import Settings

logger = logging.getLogger("live_tokens")


def mint_ephemeral_token(api_key: str,
                         settings: Settings,
                         model: str = LIVE_MODEL,
                         uses: int = TOKEN_USES,
                         ttl_minutes: int = TOKEN_TTL_MINUTES) -> str:
    """
    Create a short-lived token that can open one live session for the model.

    The long-lived API key never leaves this process; the session only sees
    the token. The session does not refresh it, so the TTL must cover the
    whole interview.

    Raises:
        RuntimeError: If the token service rejects the request
    """
    client = genai.Client(api_key=api_key, http_options={"api_version": LIVE_API_VERSION})
    now = datetime.now(tz=timezone.utc)
    try:
        token = client.auth_tokens.create(
            config={
                "uses": uses,
                "expire_time": now + timedelta(minutes=ttl_minutes),
                "new_session_expire_time": now + timedelta(minutes=1),
                "live_connect_constraints": {
                    "model": model,
                    "config": {
                        "response_modalities": ["AUDIO"],
                        "speech_config": {
                            "voice_config": {
                                "prebuilt_voice_config": {"voice_name": settings.voice_name}
                            }
                        },
                    },
                },
                "http_options": {"api_version": LIVE_API_VERSION},
            }
        )
    except Exception as e:
        logger.error(f"Ephemeral token request failed: {e}")
        raise RuntimeError(f"Could not create a live session token: {e}") from e

    logger.info(f"Minted ephemeral token for {model} (uses={uses}, ttl={ttl_minutes}m)")
    return token.name
