import asyncio
import threading

import pytest

from skillprobe.infrastructure.media import MediaAcquisition, MediaSource
from skillprobe.interview.errors import MediaUnavailable
from skillprobe.interview.testing import MockDeviceBackend, MockMicrophoneTrack


def test_disabled_camera_is_never_requested():
    backend = MockDeviceBackend()
    source = asyncio.run(MediaAcquisition(backend).acquire(enable_audio=True, enable_video=False))

    assert backend.requested == ["audio"]
    assert source.audio is not None
    assert source.video is None


def test_nothing_requested_gives_empty_source():
    backend = MockDeviceBackend()
    source = asyncio.run(MediaAcquisition(backend).acquire(enable_audio=False, enable_video=False))

    assert backend.requested == []
    assert source.tracks() == []


def test_partial_failure_keeps_the_tracks_that_opened():
    backend = MockDeviceBackend(video_error=OSError("Camera 0 is not available"))
    source = asyncio.run(MediaAcquisition(backend).acquire(enable_audio=True, enable_video=True))

    assert source.audio is backend.microphones[0]
    assert source.video is None
    assert "video" in source.failures


def test_all_requested_media_failing_raises():
    backend = MockDeviceBackend(
        audio_error=OSError("permission denied"),
        video_error=OSError("no camera"),
    )
    with pytest.raises(MediaUnavailable) as excinfo:
        asyncio.run(MediaAcquisition(backend).acquire(enable_audio=True, enable_video=True))

    assert set(excinfo.value.failures) == {"audio", "video"}
    assert "permission denied" in str(excinfo.value)


def test_stop_all_reports_failures_and_stops_the_rest():
    backend = MockDeviceBackend()
    broken = MockMicrophoneTrack(stop_error=OSError("device busy"))
    camera = backend.open_camera()
    source = MediaSource(audio=broken, video=camera)

    errors = source.stop_all()

    assert errors == ["audio: device busy"]
    assert not broken.live
    assert camera.released
    assert source.stop_all() == []


def test_stopped_microphone_stops_delivering():
    track = MockMicrophoneTrack()
    seen = []
    track.subscribe(seen.append)
    track.push([0.1, 0.2])
    track.stop()
    track.push([0.3])

    assert len(seen) == 1


def test_cancelled_acquire_stops_devices_that_finish_opening():
    async def scenario():
        gate = threading.Event()
        backend = MockDeviceBackend(gate=gate)
        acquiring = asyncio.create_task(MediaAcquisition(backend).acquire(True, True))
        for _ in range(200):
            if "audio" in backend.requested:
                break
            await asyncio.sleep(0.01)

        acquiring.cancel()
        await asyncio.sleep(0)
        gate.set()
        await asyncio.wait([acquiring], timeout=2.0)
        return backend, acquiring

    backend, acquiring = asyncio.run(scenario())

    assert acquiring.cancelled()
    assert [track.released for track in backend.microphones] == [True]
    assert [track.released for track in backend.cameras] == [True]
