import logging

from fastapi import APIRouter, Depends
from session import Session, get_session

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/status")
def get_status(session: Session = Depends(get_session)):
    """Library counts, now playing and pending alerts."""
    now_playing = None
    track_id = session.player.track_id
    if track_id:
        track = session.queue.get(track_id)
        now_playing = {
            "id": track_id,
            "name": track.name if track else None,
            "cluster_id": track.cluster_id if track else None,
            **session.player.snapshot().to_dict(),
        }

    return {
        **session.summary(),
        "now_playing": now_playing,
        "alerts": session.alerts.pending(),
    }
