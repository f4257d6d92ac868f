import logging
import os
import uuid

from models import AnalysisStatus, Track, UploadedFile

logger = logging.getLogger(__name__)

MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "10"))
MAX_FILE_SIZE = MAX_UPLOAD_MB * 1024 * 1024
DEFAULT_CONTENT_TYPE = "audio/mp3"


def format_size(size: int) -> str:
    for unit, scale in (("MB", 1024 * 1024), ("KB", 1024)):
        if size >= scale:
            return f"{size / scale:g}{unit}"
    return f"{size} bytes"


class TrackQueue:
    """In-memory list of uploaded tracks, kept in arrival order."""

    def __init__(self, max_file_size: int = MAX_FILE_SIZE):
        self.max_file_size = max_file_size
        self._tracks: dict[str, Track] = {}

    def __len__(self) -> int:
        return len(self._tracks)

    def __contains__(self, track_id: str) -> bool:
        return track_id in self._tracks

    def _new_id(self) -> str:
        track_id = str(uuid.uuid4())
        while track_id in self._tracks:
            track_id = str(uuid.uuid4())
        return track_id

    def enqueue(self, files: list[UploadedFile]) -> tuple[list[Track], str | None]:
        """Add a batch of uploads. Returns (accepted tracks, batch warning or None)."""
        accepted = []
        skipped = 0
        for f in files:
            if f.size > self.max_file_size:
                skipped += 1
                logger.warning(f"Skipping {f.name}: {f.size} bytes exceeds limit of {self.max_file_size}")
                continue
            track = Track(
                id=self._new_id(),
                name=f.name,
                size=f.size,
                content_type=f.content_type or DEFAULT_CONTENT_TYPE,
                data=f.data,
            )
            self._tracks[track.id] = track
            accepted.append(track)

        warning = None
        if skipped:
            warning = f"Some files were skipped because they exceed {format_size(self.max_file_size)}."
        logger.info(f"Enqueued {len(accepted)} track(s), skipped {skipped}")
        return accepted, warning

    def remove(self, track_id: str) -> Track:
        track = self._tracks.pop(track_id)
        logger.info(f"Removed track {track_id} ({track.name})")
        return track

    def get(self, track_id: str) -> Track | None:
        return self._tracks.get(track_id)

    def tracks(self) -> list[Track]:
        return list(self._tracks.values())

    def pending(self) -> list[Track]:
        return [t for t in self._tracks.values() if t.status == AnalysisStatus.IDLE]

    def completed(self) -> list[Track]:
        return [t for t in self._tracks.values() if t.is_eligible]

    def apply_clustering(self, assignments: dict[str, int]):
        """Write cluster ids from a clustering run; tracks not in the run lose theirs."""
        for track in self._tracks.values():
            track.cluster_id = assignments.get(track.id)
