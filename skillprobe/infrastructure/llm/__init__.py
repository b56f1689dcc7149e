"""Live dialogue channel and session tokens."""

from .live import LiveDialogueClient, LiveDialogueHandle, turns_from_message
from .tokens import mint_ephemeral_token

__all__ = ["LiveDialogueClient", "LiveDialogueHandle", "turns_from_message", "mint_ephemeral_token"]
