import logging
from typing import Awaitable, Callable

from gemini import OracleCategory, OracleError
from library import TrackQueue
from models import Track

logger = logging.getLogger(__name__)

MODEL_UNAVAILABLE_MSG = "Model not supported/found."
INVALID_INPUT_MSG = "Invalid file or parameters."


def classify_error(exc: Exception) -> str:
    """Turn an extraction failure into the message stored on the track."""
    if isinstance(exc, OracleError):
        if exc.category == OracleCategory.NOT_FOUND:
            return MODEL_UNAVAILABLE_MSG
        if exc.category == OracleCategory.INVALID_ARGUMENT:
            return INVALID_INPUT_MSG

    message = str(exc) or "Analysis failed"
    if "404" in message or "not found" in message.lower():
        return MODEL_UNAVAILABLE_MSG
    if "400" in message or "INVALID_ARGUMENT" in message:
        return INVALID_INPUT_MSG
    return message


class AnalysisPipeline:
    """Runs pending tracks through the feature extractor strictly one at a time."""

    def __init__(self, extractor, on_track_done: Callable[[Track], Awaitable[None] | None] | None = None):
        self.extractor = extractor
        self.on_track_done = on_track_done
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self, queue: TrackQueue):
        if self._running:
            logger.debug("Analysis already running; ignoring run request")
            return
        self._running = True
        try:
            pending = queue.pending()
            logger.info(f"Analysis run started with {len(pending)} pending track(s)")
            for track in pending:
                if track.id not in queue:
                    logger.info(f"Track {track.id} removed before analysis; skipping")
                    continue
                await self._process_track(track)
                if self.on_track_done is not None:
                    result = self.on_track_done(track)
                    if result is not None:
                        await result
        finally:
            self._running = False
        logger.info("Analysis run finished")

    async def _process_track(self, track: Track):
        logger.info(f"Analyzing track {track.id} ({track.name})")
        track.start_analysis()
        try:
            features = await self.extractor.extract(track.data, track.content_type)
        except Exception as e:
            error_msg = classify_error(e)
            logger.error(f"Analysis of {track.name} failed: {e}", exc_info=True)
            track.fail(error_msg)
            return

        track.complete(features)
        logger.info(f"Track {track.id} analyzed: tempo={features.tempo:.1f} energy={features.energy:.2f}")
