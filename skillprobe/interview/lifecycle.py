"""
Ownership and release of everything a live session acquires.
"""
import asyncio
import logging
from typing import List, Optional

logger = logging.getLogger("lifecycle")


class SessionResources:
    """
    The resources exclusively owned by one session: live channel handle,
    media source, audio graph, encoder node and playback element.

    release() runs each step on its own. A step that fails or finds nothing
    to release does not stop the next one, and each resource is dropped after
    its step so it is never released twice.
    """

    def __init__(self):
        self.channel = None
        self.media = None
        self.graph = None
        self.encoder = None
        self.player = None
        self.errors: List[str] = []
        self._release_task: Optional[asyncio.Future] = None

    @property
    def released(self) -> bool:
        return self._release_task is not None

    async def release(self) -> None:
        """Release everything once. Overlapping callers wait for the same release."""
        if self._release_task is None:
            self._release_task = asyncio.ensure_future(self._release_all())
        await asyncio.shield(self._release_task)

    async def _release_all(self) -> None:
        logger.info("Releasing session resources")
        await self._close_channel()
        self._step("media tracks", "media", lambda media: media.stop_all())
        self._step("audio graph", "graph", lambda graph: graph.close())
        self._step("encoder node", "encoder", lambda encoder: encoder.disconnect())
        self._step("playback", "player", lambda player: player.close())
        if self.errors:
            logger.warning(f"Teardown finished with {len(self.errors)} error(s): {self.errors}")
        else:
            logger.info("Teardown finished cleanly")

    async def _close_channel(self) -> None:
        channel, self.channel = self.channel, None
        if channel is None:
            return
        try:
            await channel.close()
        except Exception as e:
            logger.warning(f"Error closing live channel: {e}")
            self.errors.append(f"live channel: {e}")

    def _step(self, label: str, attr: str, action) -> None:
        resource = getattr(self, attr)
        setattr(self, attr, None)
        if resource is None:
            return
        try:
            result = action(resource)
        except Exception as e:
            logger.warning(f"Error releasing {label}: {e}")
            self.errors.append(f"{label}: {e}")
            return
        # MediaSource.stop_all() reports per-track failures instead of raising
        if isinstance(result, list) and result:
            self.errors.extend(result)
