import asyncio
import io

import numpy as np
import pytest
import soundfile as sf

from audio.player import Player
from errors import PlaybackFailed


def _wav(seconds=0.1, rate=16000) -> bytes:
    buf = io.BytesIO()
    sf.write(buf, np.zeros(int(seconds * rate), dtype=np.int16), rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


class FakeOutput:
    def __init__(self, active_polls=None):
        self.active = False
        self._remaining = active_polls

    def tick(self):
        if self._remaining is None:
            return
        self._remaining -= 1
        if self._remaining <= 0:
            self.active = False


class FakeSoundDevice:
    """Just enough of sounddevice's play/stop/get_stream for Player."""

    def __init__(self, active_polls=None, fail=False):
        self.active_polls = active_polls
        self.fail = fail
        self.played = []
        self.stops = 0
        self.stream = None

    def play(self, signal, rate, device=None):
        if self.fail:
            raise RuntimeError("no output device")
        self.played.append((len(signal), rate, device))
        self.stream = FakeOutput(self.active_polls)
        self.stream.active = True

    def get_stream(self):
        if self.stream is not None:
            self.stream.tick()
        return self.stream

    def stop(self):
        self.stops += 1
        if self.stream is not None:
            self.stream.active = False


@pytest.mark.asyncio
async def test_play_completes_naturally():
    sd = FakeSoundDevice(active_polls=3)
    player = Player(device=2, poll_interval=0.001, backend=sd)

    finished = await player.play(_wav())

    assert finished is True
    assert sd.played == [(1600, 16000, 2)]
    assert player.is_playing is False


@pytest.mark.asyncio
async def test_interrupt_suppresses_completion_and_releases():
    sd = FakeSoundDevice()
    player = Player(poll_interval=0.005, backend=sd)

    task = asyncio.create_task(player.play(_wav()))
    await asyncio.sleep(0.02)
    assert player.is_playing is True

    player.interrupt()
    finished = await asyncio.wait_for(task, timeout=1)

    assert finished is False
    assert player.is_playing is False
    assert sd.stops == 1

    player.interrupt()
    assert sd.stops == 1


@pytest.mark.asyncio
async def test_cancelling_playback_stops_output():
    sd = FakeSoundDevice()
    player = Player(poll_interval=0.005, backend=sd)

    task = asyncio.create_task(player.play(_wav()))
    await asyncio.sleep(0.02)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert sd.stops == 1
    assert player.is_playing is False


@pytest.mark.asyncio
async def test_undecodable_audio_is_playback_failure():
    player = Player(backend=FakeSoundDevice())

    with pytest.raises(PlaybackFailed):
        await player.play(b"not audio at all")
    assert player.is_playing is False


@pytest.mark.asyncio
async def test_device_error_is_playback_failure_and_releases():
    player = Player(backend=FakeSoundDevice(fail=True))

    with pytest.raises(PlaybackFailed):
        await player.play(_wav())
    assert player.is_playing is False
