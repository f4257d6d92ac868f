import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from session import Session, get_session

logger = logging.getLogger(__name__)
router = APIRouter()


class SeekRequest(BaseModel):
    position: float


def _player_state(session: Session) -> dict:
    state = session.player.snapshot().to_dict()
    state["alerts"] = session.alerts.pending()
    return state


@router.get("/player")
def get_player(session: Session = Depends(get_session)):
    return _player_state(session)


@router.post("/player/select/{track_id}")
async def select_track(track_id: str, session: Session = Depends(get_session)):
    track = session.queue.get(track_id)
    if not track:
        raise HTTPException(404, "Track not found")
    session.player.select(track)
    return _player_state(session)


@router.post("/player/toggle")
async def toggle_playback(session: Session = Depends(get_session)):
    session.player.toggle()
    return _player_state(session)


@router.post("/player/seek")
async def seek(req: SeekRequest, session: Session = Depends(get_session)):
    session.player.seek(req.position)
    return _player_state(session)


@router.post("/player/close")
async def close_player(session: Session = Depends(get_session)):
    session.player.close()
    return _player_state(session)


@router.post("/alerts/dismiss")
async def dismiss_alerts(session: Session = Depends(get_session)):
    return {"dismissed": session.alerts.dismiss()}
