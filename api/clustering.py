import logging
import random
from dataclasses import dataclass, field

import numpy as np
from audio import euclidean_distance, feature_vector
from models import Cluster, ScatterPoint, Track

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 20
MAX_INIT_DRAWS = 100

CLUSTER_COLORS = [
    "#f43f5e",  # rose
    "#3b82f6",  # blue
    "#22c55e",  # green
    "#eab308",  # yellow
    "#a855f7",  # purple
    "#f97316",  # orange
    "#06b6d4",  # cyan
    "#ec4899",  # pink
]


@dataclass
class ClusteringResult:
    assignments: dict[str, int] = field(default_factory=dict)
    clusters: list[Cluster] = field(default_factory=list)


def _initial_indices(n_points: int, k: int, rng: random.Random) -> list[int]:
    """Pick k distinct point indices at random, redrawing on collision.

    After MAX_INIT_DRAWS draws the rest are filled with the first unpicked points.
    """
    picked: list[int] = []
    draws = 0
    while len(picked) < k and draws < MAX_INIT_DRAWS:
        idx = rng.randrange(n_points)
        draws += 1
        if idx not in picked:
            picked.append(idx)

    if len(picked) < k:
        logger.info(f"Centroid draw capped after {draws} attempts; filling deterministically")
        for idx in range(n_points):
            if len(picked) == k:
                break
            if idx not in picked:
                picked.append(idx)
    return picked


def _nearest(point: np.ndarray, centroids: list[np.ndarray]) -> int:
    best_idx = 0
    best_dist = float("inf")
    for c_idx, centroid in enumerate(centroids):
        dist = euclidean_distance(point, centroid)
        # strict comparison keeps the first centroid on ties
        if dist < best_dist:
            best_dist = dist
            best_idx = c_idx
    return best_idx


def cluster(tracks: list[Track], k: int, rng: random.Random | None = None) -> ClusteringResult:
    """
    K-means over (energy, valence, danceability, acousticness) of the analyzed tracks.

    Only COMPLETED tracks with features take part. The effective k is capped at the
    number of such tracks. Returns a fresh result; the tracks are not modified.
    """
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")
    rng = rng or random.Random()

    eligible = [t for t in tracks if t.is_eligible]
    if not eligible:
        return ClusteringResult()

    points = [feature_vector(t.features) for t in eligible]
    actual_k = min(k, len(points))

    centroids = [points[i].copy() for i in _initial_indices(len(points), actual_k, rng)]
    assignments = [-1] * len(points)

    iterations = 0
    while iterations < MAX_ITERATIONS:
        changed = False
        for p_idx, point in enumerate(points):
            c_idx = _nearest(point, centroids)
            if assignments[p_idx] != c_idx:
                assignments[p_idx] = c_idx
                changed = True

        if not changed:
            break

        new_centroids = []
        for c_idx in range(actual_k):
            members = [points[p] for p, a in enumerate(assignments) if a == c_idx]
            if members:
                new_centroids.append(np.mean(members, axis=0))
            else:
                new_centroids.append(centroids[c_idx])
        centroids = new_centroids
        iterations += 1

    counts = [assignments.count(c_idx) for c_idx in range(actual_k)]
    # Renumber densely so clusters that ended up empty are not reported
    remap: dict[int, int] = {}
    clusters = []
    for c_idx, centroid in enumerate(centroids):
        if counts[c_idx] == 0:
            continue
        new_id = len(clusters)
        remap[c_idx] = new_id
        clusters.append(
            Cluster(
                id=new_id,
                name=f"Cluster {new_id + 1}",
                color=CLUSTER_COLORS[new_id % len(CLUSTER_COLORS)],
                centroid=(float(centroid[1]), float(centroid[0])),
                size=counts[c_idx],
            )
        )

    result = ClusteringResult(
        assignments={t.id: remap[assignments[i]] for i, t in enumerate(eligible)},
        clusters=clusters,
    )
    logger.info(
        f"Clustered {len(eligible)} track(s) into {len(clusters)} cluster(s) "
        f"(requested k={k}, iterations={iterations})"
    )
    return result


def scatter_points(tracks: list[Track]) -> list[ScatterPoint]:
    """Plot data for analyzed tracks: x=valence, y=energy, size=danceability."""
    return [
        ScatterPoint(
            track_id=t.id,
            name=t.name,
            x=t.features.valence,
            y=t.features.energy,
            size=t.features.danceability,
            tempo=t.features.tempo,
            cluster_id=t.cluster_id,
        )
        for t in tracks
        if t.is_eligible
    ]
