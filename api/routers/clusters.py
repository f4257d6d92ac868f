import logging

from clustering import scatter_points
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from session import MAX_CLUSTERS, MIN_CLUSTERS, Session, get_session

logger = logging.getLogger(__name__)
router = APIRouter()


class ConfigUpdate(BaseModel):
    cluster_count: int | None = None


@router.get("/clusters")
def get_clusters(session: Session = Depends(get_session)):
    return {
        "cluster_count": session.cluster_count,
        "clusters": [c.to_dict() for c in session.clusters],
    }


@router.get("/clusters/points")
def get_points(session: Session = Depends(get_session)):
    """Scatter data: x=valence, y=energy, size=danceability."""
    return {
        "points": [
            {
                "track_id": p.track_id,
                "name": p.name,
                "x": p.x,
                "y": p.y,
                "size": p.size,
                "tempo": p.tempo,
                "cluster_id": p.cluster_id,
            }
            for p in scatter_points(session.queue.tracks())
        ]
    }


@router.get("/config")
def get_config(session: Session = Depends(get_session)):
    return {
        "cluster_count": session.cluster_count,
        "min_clusters": MIN_CLUSTERS,
        "max_clusters": MAX_CLUSTERS,
    }


@router.post("/config")
async def update_config(update: ConfigUpdate, session: Session = Depends(get_session)):
    if update.cluster_count is not None:
        if not (MIN_CLUSTERS <= update.cluster_count <= MAX_CLUSTERS):
            raise HTTPException(400, f"cluster_count must be {MIN_CLUSTERS}-{MAX_CLUSTERS}")
        session.set_cluster_count(update.cluster_count)
    return {"ok": True}
