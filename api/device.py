import asyncio
import logging
import os
import tempfile
import threading
from typing import Callable, Protocol

from audio import Waveform, load_media

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL_S = 0.25


class MediaError(Exception):
    """Raised when a track cannot be decoded or played on the output device."""


class MediaListener(Protocol):
    def on_loaded(self, duration: float) -> None: ...

    def on_time(self, position: float) -> None: ...

    def on_ended(self) -> None: ...

    def on_error(self, exc: Exception) -> None: ...


def _sounddevice():
    try:
        import sounddevice as sd  # ty: ignore[unresolved-import]
    except (ImportError, OSError) as e:
        raise MediaError(f"Audio output unavailable: {e}") from e
    return sd


class PlayableHandle:
    """Temporary file holding a track payload for the media decoder.

    Acquired on select, released on replacement, close or teardown. Release is idempotent.
    """

    def __init__(self, path: str):
        self.path = path
        self._released = False

    @classmethod
    def acquire(cls, data: bytes, suffix: str = "") -> "PlayableHandle":
        fd, path = tempfile.mkstemp(prefix="soniccluster-", suffix=suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return cls(path)

    @property
    def released(self) -> bool:
        return self._released

    def release(self):
        if self._released:
            return
        self._released = True
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        logger.debug(f"Released playable handle {self.path}")


class _OutputStream:
    """Plays a waveform from a frame offset; reports progress and completion on the event loop."""

    def __init__(
        self,
        waveform: Waveform,
        start_frame: int,
        loop: asyncio.AbstractEventLoop,
        on_progress: Callable[[int], None] | None,
        on_finished: Callable[[bool], None],
    ):
        self.waveform = waveform
        self.frame = start_frame
        self._loop = loop
        self._on_progress = on_progress
        self._on_finished = on_finished
        self._lock = threading.Lock()
        self._stopped = False
        self._stream = None
        self._sd = None
        self._last_report = start_frame

    def start(self):
        sd = _sounddevice()
        self._sd = sd
        try:
            self._stream = sd.OutputStream(
                samplerate=self.waveform.sample_rate,
                channels=self.waveform.samples.shape[1],
                dtype="float32",
                callback=self._callback,
                finished_callback=self._finished,
            )
            self._stream.start()
        except Exception as e:
            self._stream = None
            raise MediaError(f"Could not open output stream: {e}") from e

    def _callback(self, outdata, frames, time_info, status):
        with self._lock:
            chunk = self.waveform.samples[self.frame : self.frame + frames]
            n = len(chunk)
            outdata[:n] = chunk
            if n < frames:
                outdata[n:] = 0
            self.frame += n
            frame = self.frame
        if self._on_progress is not None and frame - self._last_report >= PROGRESS_INTERVAL_S * self.waveform.sample_rate:
            self._last_report = frame
            self._loop.call_soon_threadsafe(self._on_progress, frame)
        if n < frames:
            raise self._sd.CallbackStop

    def _finished(self):
        completed = not self._stopped
        self._loop.call_soon_threadsafe(self._on_finished, completed)

    def stop(self) -> int:
        """Halt immediately; safe on a stream that already stopped. Returns the frame reached."""
        self._stopped = True
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.abort()
                stream.close()
            except Exception as e:
                logger.warning(f"Error closing output stream: {e}")
        with self._lock:
            return self.frame


class DeviceMedia:
    """A track bound to a playable handle. Starts paused; decodes on first play."""

    def __init__(self, handle: PlayableHandle, listener: MediaListener):
        self.handle = handle
        self.listener = listener
        self._loop = asyncio.get_running_loop()
        self._waveform: Waveform | None = None
        self._frame = 0
        self._stream: _OutputStream | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def play(self):
        if self._closed or self._stream is not None:
            return
        if self._waveform is None:
            try:
                waveform = await asyncio.to_thread(load_media, self.handle.path)
            except Exception as e:
                raise MediaError(f"Could not decode audio: {e}") from e
            if self._closed:
                return
            self._waveform = waveform
            self.listener.on_loaded(waveform.duration)
        if self._frame >= len(self._waveform.samples):
            self._frame = 0
        self._start_stream()

    def _start_stream(self):
        stream = _OutputStream(
            self._waveform,
            self._frame,
            self._loop,
            self._progress,
            lambda completed: self._finished(stream, completed),
        )
        stream.start()
        self._stream = stream

    def _progress(self, frame: int):
        if self._waveform is not None and not self._closed:
            self.listener.on_time(frame / self._waveform.sample_rate)

    def _finished(self, stream: _OutputStream, completed: bool):
        if not completed or self._closed or stream is not self._stream:
            return
        stream.stop()
        self._frame = len(self._waveform.samples)
        self._stream = None
        self.listener.on_ended()

    def pause(self):
        if self._stream is not None:
            self._frame = self._stream.stop()
            self._stream = None

    def seek(self, position: float):
        if self._waveform is None:
            return
        was_playing = self._stream is not None
        self.pause()
        self._frame = int(position * self._waveform.sample_rate)
        if was_playing and not self._closed:
            try:
                self._start_stream()
            except MediaError as e:
                self.listener.on_error(e)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.pause()
        self._waveform = None


class DeviceVoice:
    """One-shot playback of a synthesized voice clip."""

    def __init__(self, waveform: Waveform):
        self.waveform = waveform
        self._done = asyncio.Event()
        self._stream = _OutputStream(waveform, 0, asyncio.get_running_loop(), None, self._finished)

    def start(self):
        self._stream.start()

    def _finished(self, completed: bool):
        self._stream.stop()
        self._done.set()

    @property
    def finished(self) -> bool:
        return self._done.is_set()

    async def wait(self):
        await self._done.wait()

    def stop(self):
        self._stream.stop()
        self._done.set()


class DeviceBackend:
    """Opens media and voice sources on the default output device."""

    def __init__(self):
        self._media: list[DeviceMedia] = []
        self._voices: list[DeviceVoice] = []

    def open_media(self, handle: PlayableHandle, listener: MediaListener) -> DeviceMedia:
        self._media = [m for m in self._media if not m.closed]
        media = DeviceMedia(handle, listener)
        self._media.append(media)
        return media

    def start_voice(self, waveform: Waveform) -> DeviceVoice:
        self._voices = [v for v in self._voices if not v.finished]
        voice = DeviceVoice(waveform)
        voice.start()
        self._voices.append(voice)
        return voice

    def close(self):
        for voice in self._voices:
            voice.stop()
        for media in self._media:
            media.close()
        self._voices.clear()
        self._media.clear()
        logger.info("Audio device backend closed")
