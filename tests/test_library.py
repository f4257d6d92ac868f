"""Tests for the in-memory track queue."""

import pytest
from conftest import make_features
from library import DEFAULT_CONTENT_TYPE, TrackQueue, format_size
from models import AnalysisStatus, UploadedFile


def upload(name: str, size: int = 10, content_type: str = "audio/mpeg") -> UploadedFile:
    return UploadedFile(name=name, size=size, content_type=content_type, data=b"x" * min(size, 16))


class TestEnqueue:
    def test_creates_idle_tracks_in_arrival_order(self):
        queue = TrackQueue()
        tracks, warning = queue.enqueue([upload("a.mp3"), upload("b.mp3"), upload("c.mp3")])

        assert warning is None
        assert [t.name for t in tracks] == ["a.mp3", "b.mp3", "c.mp3"]
        assert all(t.status == AnalysisStatus.IDLE for t in tracks)
        assert [t.name for t in queue.tracks()] == ["a.mp3", "b.mp3", "c.mp3"]

    def test_oversize_files_rejected_with_one_batch_warning(self):
        queue = TrackQueue(max_file_size=1024 * 1024)
        tracks, warning = queue.enqueue(
            [upload("ok.mp3"), upload("big.mp3", size=2 * 1024 * 1024), upload("huge.wav", size=5 * 1024 * 1024)]
        )

        assert [t.name for t in tracks] == ["ok.mp3"]
        assert warning == "Some files were skipped because they exceed 1MB."
        assert len(queue) == 1

    def test_warning_names_small_limits_exactly(self):
        queue = TrackQueue(max_file_size=512 * 1024)
        _, warning = queue.enqueue([upload("big.mp3", size=600 * 1024)])
        assert warning == "Some files were skipped because they exceed 512KB."

    @pytest.mark.parametrize(
        "size, text",
        [(10 * 1024 * 1024, "10MB"), (1536 * 1024, "1.5MB"), (2048, "2KB"), (8, "8 bytes")],
    )
    def test_format_size(self, size, text):
        assert format_size(size) == text

    def test_ids_unique_across_batches(self):
        queue = TrackQueue()
        ids = set()
        for _ in range(5):
            tracks, _ = queue.enqueue([upload(f"{i}.mp3") for i in range(20)])
            ids.update(t.id for t in tracks)
        assert len(ids) == 100
        assert len(queue) == 100

    def test_missing_content_type_gets_default(self):
        queue = TrackQueue()
        tracks, _ = queue.enqueue([upload("a", content_type="")])
        assert tracks[0].content_type == DEFAULT_CONTENT_TYPE


class TestRemoveAndViews:
    def test_remove(self):
        queue = TrackQueue()
        tracks, _ = queue.enqueue([upload("a.mp3"), upload("b.mp3")])
        removed = queue.remove(tracks[0].id)

        assert removed is tracks[0]
        assert tracks[0].id not in queue
        assert queue.get(tracks[0].id) is None
        assert [t.name for t in queue.tracks()] == ["b.mp3"]

    def test_remove_unknown_raises(self):
        with pytest.raises(KeyError):
            TrackQueue().remove("nope")

    def test_pending_and_completed(self):
        queue = TrackQueue()
        tracks, _ = queue.enqueue([upload("a.mp3"), upload("b.mp3"), upload("c.mp3")])
        tracks[0].start_analysis()
        tracks[0].complete(make_features())
        tracks[1].start_analysis()

        assert queue.pending() == [tracks[2]]
        assert queue.completed() == [tracks[0]]

    def test_apply_clustering_clears_stale_assignments(self):
        queue = TrackQueue()
        tracks, _ = queue.enqueue([upload("a.mp3"), upload("b.mp3")])
        tracks[1].cluster_id = 4

        queue.apply_clustering({tracks[0].id: 0})

        assert tracks[0].cluster_id == 0
        assert tracks[1].cluster_id is None


class TestTrackTransitions:
    def test_complete_sets_features_only(self):
        queue = TrackQueue()
        (track,), _ = queue.enqueue([upload("a.mp3")])
        track.start_analysis()
        track.complete(make_features())
        assert track.features is not None and track.error is None

    def test_fail_sets_error_only(self):
        queue = TrackQueue()
        (track,), _ = queue.enqueue([upload("a.mp3")])
        track.start_analysis()
        track.fail("boom")
        assert track.status == AnalysisStatus.ERROR
        assert track.error == "boom" and track.features is None

    def test_terminal_states_cannot_restart(self):
        queue = TrackQueue()
        (track,), _ = queue.enqueue([upload("a.mp3")])
        track.start_analysis()
        track.fail("boom")
        with pytest.raises(ValueError):
            track.start_analysis()
