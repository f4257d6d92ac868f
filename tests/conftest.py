# conftest.py - shared fakes for the oracles and the audio device
import asyncio

import numpy as np
import pytest
from audio import Waveform
from device import MediaError
from models import AnalysisStatus, AudioFeatures, Track


def make_features(energy=0.5, valence=0.5, danceability=0.5, acousticness=0.5, tempo=120.0, description="test"):
    return AudioFeatures(
        energy=energy,
        valence=valence,
        danceability=danceability,
        acousticness=acousticness,
        tempo=tempo,
        description=description,
    )


def make_track(track_id: str, features: AudioFeatures | None = None, status: AnalysisStatus | None = None, name=None):
    if status is None:
        status = AnalysisStatus.COMPLETED if features else AnalysisStatus.IDLE
    return Track(
        id=track_id,
        name=name or f"{track_id}.mp3",
        size=4,
        content_type="audio/mpeg",
        data=b"\x00\x01\x02\x03",
        status=status,
        features=features,
    )


def short_clip() -> Waveform:
    return Waveform(samples=np.zeros((240, 1), dtype=np.float32), sample_rate=24000)


class FakeExtractor:
    """Returns canned features per payload; tracks concurrency."""

    def __init__(self, results: dict | None = None):
        self.results = results or {}
        self.calls: list[bytes] = []
        self.outstanding = 0
        self.max_outstanding = 0

    async def extract(self, data: bytes, mime_type: str) -> AudioFeatures:
        self.calls.append(data)
        self.outstanding += 1
        self.max_outstanding = max(self.max_outstanding, self.outstanding)
        try:
            await asyncio.sleep(0)
            result = self.results.get(data, make_features())
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.outstanding -= 1


class FakeSynthesizer:
    """Each request waits on a future the test resolves."""

    def __init__(self):
        self.requests: list[tuple[str, asyncio.Future]] = []

    async def synthesize(self, text: str) -> Waveform:
        future = asyncio.get_running_loop().create_future()
        self.requests.append((text, future))
        return await future

    def resolve(self, index: int, waveform: Waveform | None = None):
        self.requests[index][1].set_result(waveform or short_clip())

    def fail(self, index: int, exc: Exception):
        self.requests[index][1].set_exception(exc)


class FakeMedia:
    def __init__(self, handle, listener, fail_play=False):
        self.handle = handle
        self.listener = listener
        self.fail_play = fail_play
        self.playing = False
        self.closed = False
        self.play_calls = 0
        self.seeks: list[float] = []

    async def play(self):
        self.play_calls += 1
        await asyncio.sleep(0)
        if self.fail_play:
            raise MediaError("device gone")
        if not self.closed:
            self.playing = True

    def pause(self):
        self.playing = False

    def seek(self, position: float):
        self.seeks.append(position)

    def close(self):
        self.playing = False
        self.closed = True


class FakeVoice:
    def __init__(self, waveform):
        self.waveform = waveform
        self.stopped = False
        self.stop_calls = 0
        self._done = asyncio.Event()

    def finish(self):
        self._done.set()

    async def wait(self):
        await self._done.wait()

    def stop(self):
        self.stop_calls += 1
        self.stopped = True
        self._done.set()


class FakeBackend:
    def __init__(self, fail_play=False):
        self.fail_play = fail_play
        self.media: list[FakeMedia] = []
        self.voices: list[FakeVoice] = []
        self.closed = False

    def open_media(self, handle, listener):
        media = FakeMedia(handle, listener, fail_play=self.fail_play)
        self.media.append(media)
        return media

    def start_voice(self, waveform):
        voice = FakeVoice(waveform)
        self.voices.append(voice)
        return voice

    def close(self):
        self.closed = True


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
