import asyncio

import pytest

from skillprobe.infrastructure.audio.playback import AudioPlayer


@pytest.fixture
def player(monkeypatch):
    monkeypatch.setattr(AudioPlayer, "_ensure_stream", lambda self: None)
    return AudioPlayer()


def test_new_clip_replaces_current_one(player):
    ended = []

    async def scenario():
        first = player.play(b"\x00\x01" * 10, on_ended=lambda: ended.append("first"))
        second = player.play(b"\x00\x02" * 10, on_ended=lambda: ended.append("second"))
        # The device thread reports the first clip late; it was replaced
        player._finish(first)
        player._finish(second)
        return first, second

    first, second = asyncio.run(scenario())
    assert second == first + 1
    assert ended == ["second"]


def test_stopped_clip_never_reports_end(player):
    ended = []

    async def scenario():
        generation = player.play(b"\x00\x01" * 10, on_ended=lambda: ended.append(True))
        player.stop()
        player._finish(generation)

    asyncio.run(scenario())
    assert ended == []
    assert not player.is_playing


def test_closed_player_refuses_new_clips(player):
    player.close()
    player.close()

    async def scenario():
        player.play(b"\x00\x00")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())
