import logging
import os
from contextlib import asynccontextmanager

from device import DeviceBackend
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from gemini import FeatureExtractor, SpeechSynthesizer
from routers import clusters, playback, status, tracks
from session import Session

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = os.getenv("APP_NAME", "SonicCluster")


def build_session() -> Session:
    return Session(
        extractor=FeatureExtractor(),
        synthesizer=SpeechSynthesizer(),
        backend=DeviceBackend(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up %s API", APP_NAME)
    app.state.session = build_session()
    yield
    logger.info("Shutting down %s API", APP_NAME)
    await app.state.session.shutdown()


app = FastAPI(title=APP_NAME + " API", lifespan=lifespan)

_hostname = os.environ.get("SERVER_HOSTNAME", "")
_origins = [f"https://{_hostname}"] if _hostname else ["http://localhost", "http://localhost:8000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type"],
)

app.include_router(tracks.router)
app.include_router(clusters.router)
app.include_router(playback.router)
app.include_router(status.router)


@app.get("/health")
def health():
    return {"ok": True}
