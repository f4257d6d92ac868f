import asyncio
import logging
import os

from alerts import AlertBoard
from device import MediaError, PlayableHandle
from models import PlaybackPhase, PlayerSnapshot, Track

logger = logging.getLogger(__name__)

PLAYBACK_ERROR_MSG = "Error playing audio file."
FALLBACK_DESCRIPTION = "analyzed track"


def build_caption(track: Track) -> str:
    description = FALLBACK_DESCRIPTION
    if track.features and track.features.description:
        description = track.features.description
    return f"Playing {track.name}. {description}"


class _SelectionListener:
    """Media events for one selection. Dropped once that selection is superseded."""

    def __init__(self, player: "PlaybackOrchestrator", generation: int):
        self._player = player
        self._generation = generation

    def on_loaded(self, duration: float) -> None:
        if self._player.is_current(self._generation):
            self._player.duration = duration

    def on_time(self, position: float) -> None:
        if self._player.is_current(self._generation):
            self._player.current_time = position

    def on_ended(self) -> None:
        if self._player.is_current(self._generation):
            self._player._media_ended()

    def on_error(self, exc: Exception) -> None:
        if self._player.is_current(self._generation):
            self._player._media_failed(exc)


class PlaybackOrchestrator:
    """
    Plays a spoken description of the selected track, then the track itself.

    Every selection bumps a generation counter. Asynchronous steps capture the
    generation they started under and do nothing once it is no longer current,
    so a stale voice clip or media event never reaches the listener.
    """

    def __init__(self, synthesizer, backend, alerts: AlertBoard | None = None):
        self.synthesizer = synthesizer
        self.backend = backend
        self.alerts = alerts or AlertBoard()

        self._generation = 0
        self._track_id: str | None = None
        self._handle: PlayableHandle | None = None
        self._media = None
        self._voice = None
        self._tasks: set[asyncio.Task] = set()
        self._resume: asyncio.Task | None = None

        self.phase = PlaybackPhase.IDLE
        self.is_playing = False
        self.is_paused = False
        self.is_loading_voice = False
        self.current_time = 0.0
        self.duration = 0.0

    @property
    def track_id(self) -> str | None:
        return self._track_id

    def is_current(self, generation: int) -> bool:
        return self._track_id is not None and generation == self._generation

    def snapshot(self) -> PlayerSnapshot:
        return PlayerSnapshot(
            track_id=self._track_id,
            phase=self.phase,
            is_playing=self.is_playing,
            is_paused=self.is_paused,
            is_loading_voice=self.is_loading_voice,
            current_time=self.current_time,
            duration=self.duration,
        )

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _release(self):
        """Stop voice and media of the current selection and free its handle."""
        if self._voice is not None:
            self._voice.stop()
            self._voice = None
        if self._media is not None:
            self._media.close()
            self._media = None
        if self._handle is not None:
            self._handle.release()
            self._handle = None

    def _reset_state(self):
        self._resume = None
        self.phase = PlaybackPhase.IDLE
        self.is_playing = False
        self.is_paused = False
        self.is_loading_voice = False
        self.current_time = 0.0
        self.duration = 0.0

    def select(self, track: Track) -> asyncio.Task | None:
        """Start the voice-then-track sequence, or toggle pause if the track is already selected."""
        if track.id == self._track_id and self._media is not None:
            return self.toggle()

        self._release()
        self._generation += 1
        generation = self._generation
        self._track_id = track.id
        self._reset_state()
        self.phase = PlaybackPhase.PREPARING

        suffix = os.path.splitext(track.name)[1]
        self._handle = PlayableHandle.acquire(track.data, suffix=suffix)
        media = self.backend.open_media(self._handle, _SelectionListener(self, generation))
        self._media = media

        self.is_loading_voice = True
        logger.info(f"Selected track {track.id} ({track.name})")
        return self._spawn(self._announce_then_play(generation, track, media))

    async def _announce_then_play(self, generation: int, track: Track, media):
        caption = build_caption(track)
        try:
            waveform = await self.synthesizer.synthesize(caption)
        except Exception as e:
            if not self.is_current(generation):
                return
            logger.warning(f"Voice synthesis failed, playing music directly: {e}")
            self.is_loading_voice = False
            await self._start_media(generation, media)
            return

        if not self.is_current(generation):
            logger.debug(f"Discarding voice clip for superseded selection {track.id}")
            return
        self.is_loading_voice = False

        try:
            voice = self.backend.start_voice(waveform)
        except MediaError as e:
            logger.warning(f"Voice playback failed, playing music directly: {e}")
        else:
            self._voice = voice
            self.phase = PlaybackPhase.VOICE_PLAYING
            await voice.wait()
            if not self.is_current(generation):
                return
            self._voice = None

        await self._start_media(generation, media)

    async def _start_media(self, generation: int, media):
        if not self.is_current(generation):
            return
        try:
            await media.play()
        except MediaError as e:
            if self.is_current(generation):
                self._media_failed(e)
            return
        if not self.is_current(generation):
            return
        self.phase = PlaybackPhase.MEDIA_PLAYING
        self.is_playing = True
        self.is_paused = False

    def _media_ended(self):
        self.phase = PlaybackPhase.IDLE
        self.is_playing = False
        self.is_paused = False

    def _media_failed(self, exc: Exception):
        logger.error(f"Playback failed for {self._track_id}: {exc}")
        self.alerts.send_alert(PLAYBACK_ERROR_MSG, track_id=self._track_id)
        if self._media is not None:
            self._media.pause()
        self.phase = PlaybackPhase.IDLE
        self.is_playing = False
        self.is_paused = False

    def toggle(self) -> asyncio.Task | None:
        """Pause or resume the track. Ignored until the voice part is over."""
        if self._media is None:
            return None
        if self.phase in (PlaybackPhase.PREPARING, PlaybackPhase.VOICE_PLAYING):
            logger.debug("Toggle ignored while the description is pending")
            return None
        if self.is_playing or self._resuming():
            if self._resume is not None:
                self._resume.cancel()
                self._resume = None
            self._media.pause()
            self.is_playing = False
            self.is_paused = True
            return None
        self._resume = self._spawn(self._start_media(self._generation, self._media))
        return self._resume

    def _resuming(self) -> bool:
        return self._resume is not None and not self._resume.done()

    def seek(self, position: float):
        """Move within the track. Ignored until the duration is known."""
        if self._media is None or self.duration <= 0:
            return
        position = min(max(0.0, float(position)), self.duration)
        self._media.seek(position)
        self.current_time = position

    def close(self):
        """Stop everything and forget the selection. Safe to call repeatedly."""
        self._generation += 1
        if self._track_id is not None:
            logger.info(f"Closing player for {self._track_id}")
        self._release()
        self._track_id = None
        self._reset_state()

    async def teardown(self):
        self.close()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.backend.close()
