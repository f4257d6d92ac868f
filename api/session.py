import asyncio
import logging
import os
import random

from alerts import AlertBoard
from clustering import cluster
from fastapi import Request
from library import TrackQueue
from models import Cluster, Track, UploadedFile
from player import PlaybackOrchestrator
from worker import AnalysisPipeline

logger = logging.getLogger(__name__)

MIN_CLUSTERS = 2
MAX_CLUSTERS = 8
DEFAULT_CLUSTER_COUNT = int(os.environ.get("DEFAULT_CLUSTER_COUNT", "3"))


class Session:
    """Everything one listener works with: queue, analysis, clusters and the player."""

    def __init__(
        self,
        extractor,
        synthesizer,
        backend,
        queue: TrackQueue | None = None,
        cluster_count: int = DEFAULT_CLUSTER_COUNT,
        rng: random.Random | None = None,
    ):
        if not (MIN_CLUSTERS <= cluster_count <= MAX_CLUSTERS):
            raise ValueError(f"cluster_count must be {MIN_CLUSTERS}-{MAX_CLUSTERS}")
        self.queue = queue or TrackQueue()
        self.alerts = AlertBoard()
        self.pipeline = AnalysisPipeline(extractor, on_track_done=self._on_track_done)
        self.player = PlaybackOrchestrator(synthesizer, backend, self.alerts)
        self.cluster_count = cluster_count
        self.clusters: list[Cluster] = []
        self._rng = rng
        self._clustered_key: tuple | None = None
        self._analysis_task: asyncio.Task | None = None

    def add_files(self, files: list[UploadedFile]) -> tuple[list[Track], str | None]:
        tracks, warning = self.queue.enqueue(files)
        if tracks:
            self.schedule_analysis()
        return tracks, warning

    def schedule_analysis(self) -> asyncio.Task | None:
        if self._analysis_task is not None and not self._analysis_task.done():
            # the running loop in analyze() picks up the new tracks
            return self._analysis_task
        self._analysis_task = asyncio.get_running_loop().create_task(self.analyze())
        return self._analysis_task

    async def analyze(self):
        if self.pipeline.is_running:
            return
        while self.queue.pending():
            await self.pipeline.run(self.queue)

    def _on_track_done(self, track: Track):
        self.recluster()

    def remove_track(self, track_id: str) -> Track:
        if track_id not in self.queue:
            raise KeyError(track_id)
        if self.player.track_id == track_id:
            self.player.close()
        track = self.queue.remove(track_id)
        self.recluster()
        return track

    def set_cluster_count(self, k: int):
        if not (MIN_CLUSTERS <= k <= MAX_CLUSTERS):
            raise ValueError(f"cluster_count must be {MIN_CLUSTERS}-{MAX_CLUSTERS}")
        self.cluster_count = k
        logger.info(f"Cluster count set to {k}")
        self.recluster()

    def recluster(self, force: bool = False) -> bool:
        """Re-run clustering when the analyzed set or k changed. Returns True if it ran."""
        completed = self.queue.completed()
        key = (tuple(t.id for t in completed), self.cluster_count)
        if not force and key == self._clustered_key:
            return False
        result = cluster(completed, self.cluster_count, rng=self._rng)
        self.queue.apply_clustering(result.assignments)
        self.clusters = result.clusters
        self._clustered_key = key
        return True

    def summary(self) -> dict:
        tracks = self.queue.tracks()
        return {
            "total_tracks": len(tracks),
            "analyzed": sum(1 for t in tracks if t.is_eligible),
            "clusters": len(self.clusters),
            "cluster_count": self.cluster_count,
            "is_processing": self.pipeline.is_running,
        }

    async def shutdown(self):
        if self._analysis_task is not None and not self._analysis_task.done():
            self._analysis_task.cancel()
            try:
                await self._analysis_task
            except asyncio.CancelledError:
                pass
        await self.player.teardown()
        logger.info("Session shut down")


def get_session(request: Request) -> Session:
    return request.app.state.session
