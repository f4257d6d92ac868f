"""Tests for the session wiring: analysis, re-clustering and removal ordering."""

import asyncio
import random

import pytest
from conftest import FakeBackend, FakeExtractor, FakeSynthesizer, make_features
from models import AnalysisStatus, UploadedFile
from session import Session


def uploads(*payloads: bytes):
    return [UploadedFile(name=f"{p.decode()}.mp3", size=len(p), content_type="audio/mpeg", data=p) for p in payloads]


def make_session(results=None) -> Session:
    return Session(
        extractor=FakeExtractor(results),
        synthesizer=FakeSynthesizer(),
        backend=FakeBackend(),
        cluster_count=2,
        rng=random.Random(0),
    )


class TestAnalysisAndClustering:
    @pytest.mark.asyncio
    async def test_upload_analyzes_and_clusters(self):
        session = make_session(
            {
                b"a": make_features(0.1, 0.1, 0.1, 0.9),
                b"b": make_features(0.9, 0.9, 0.9, 0.1),
                b"c": make_features(0.12, 0.1, 0.1, 0.9),
            }
        )
        tracks, warning = session.add_files(uploads(b"a", b"b", b"c"))
        assert warning is None
        await session._analysis_task

        assert all(t.status == AnalysisStatus.COMPLETED for t in tracks)
        assert len(session.clusters) == 2
        a, b, c = tracks
        assert a.cluster_id == c.cluster_id != b.cluster_id

    @pytest.mark.asyncio
    async def test_tracks_added_mid_run_are_analyzed(self):
        session = make_session()
        session.add_files(uploads(b"a"))
        await asyncio.sleep(0)
        session.add_files(uploads(b"b"))
        await session._analysis_task

        assert [t.status for t in session.queue.tracks()] == [AnalysisStatus.COMPLETED] * 2
        assert session.pipeline.extractor.calls == [b"a", b"b"]

    @pytest.mark.asyncio
    async def test_changing_k_reclusters(self):
        session = make_session()
        session.add_files(uploads(b"a", b"b", b"c", b"d"))
        await session._analysis_task
        assert session.recluster() is False

        session.set_cluster_count(3)
        assert session.cluster_count == 3
        assert session.recluster() is False
        assert session.recluster(force=True) is True

    def test_cluster_count_bounds(self):
        session = make_session()
        with pytest.raises(ValueError):
            session.set_cluster_count(1)
        with pytest.raises(ValueError):
            session.set_cluster_count(9)

    @pytest.mark.asyncio
    async def test_removal_reclusters(self):
        session = make_session()
        session.add_files(uploads(b"a", b"b"))
        await session._analysis_task
        first, second = session.queue.tracks()
        assert second.cluster_id is not None

        session.remove_track(first.id)
        assert len(session.clusters) == 1
        assert second.cluster_id == 0

        session.remove_track(second.id)
        assert session.clusters == []


class TestRemoval:
    @pytest.mark.asyncio
    async def test_removing_selected_track_closes_player_first(self):
        session = make_session()
        (track,), _ = session.queue.enqueue(uploads(b"a"))
        session.player.select(track)
        media = session.player.backend.media[0]

        session.remove_track(track.id)
        assert session.player.track_id is None
        assert media.closed
        assert media.handle.released
        assert track.id not in session.queue

    def test_remove_unknown(self):
        with pytest.raises(KeyError):
            make_session().remove_track("missing")

    @pytest.mark.asyncio
    async def test_summary_and_shutdown(self):
        session = make_session({b"bad": RuntimeError("boom")})
        session.add_files(uploads(b"ok", b"bad"))
        await session._analysis_task

        summary = session.summary()
        assert summary["total_tracks"] == 2
        assert summary["analyzed"] == 1
        assert summary["clusters"] == 1
        assert summary["is_processing"] is False

        await session.shutdown()
        assert session.player.backend.closed
