import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from models import UploadedFile
from session import Session, get_session

logger = logging.getLogger(__name__)
router = APIRouter()

READ_CHUNK = 65536


async def _read_upload(file: UploadFile, max_size: int) -> UploadedFile:
    """Read an upload, giving up on the payload once it passes the size limit."""
    data = bytearray()
    size = 0
    while chunk := await file.read(READ_CHUNK):
        size += len(chunk)
        if size > max_size:
            data = bytearray()
            break
        data.extend(chunk)
    return UploadedFile(
        name=file.filename or "untitled",
        size=size,
        content_type=file.content_type or "",
        data=bytes(data),
    )


@router.post("/tracks")
async def upload_tracks(files: list[UploadFile] = File(...), session: Session = Depends(get_session)):
    uploads = []
    non_audio = 0
    for file in files:
        if file.content_type and not file.content_type.startswith("audio/"):
            non_audio += 1
            logger.info(f"Ignoring non-audio upload {file.filename} ({file.content_type})")
            continue
        uploads.append(await _read_upload(file, session.queue.max_file_size))

    accepted, warning = session.add_files(uploads)
    return {
        "tracks": [t.to_dict() for t in accepted],
        "warning": warning,
        "ignored_non_audio": non_audio,
    }


@router.post("/tracks/analyze")
async def analyze_tracks(session: Session = Depends(get_session)):
    """Kick the analysis pipeline for any IDLE tracks."""
    session.schedule_analysis()
    return {"ok": True, "pending": len(session.queue.pending())}


@router.get("/tracks")
def list_tracks(session: Session = Depends(get_session)):
    return {"tracks": [t.to_dict() for t in session.queue.tracks()]}


@router.get("/tracks/{track_id}")
def get_track(track_id: str, session: Session = Depends(get_session)):
    track = session.queue.get(track_id)
    if not track:
        raise HTTPException(404, "Track not found")
    return track.to_dict()


@router.delete("/tracks/{track_id}")
async def delete_track(track_id: str, session: Session = Depends(get_session)):
    try:
        session.remove_track(track_id)
    except KeyError:
        raise HTTPException(404, "Track not found")
    return {"ok": True}
