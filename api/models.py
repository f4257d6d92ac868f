from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class AnalysisStatus(str, Enum):
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class PlaybackPhase(str, Enum):
    IDLE = "IDLE"
    PREPARING = "PREPARING"
    VOICE_PLAYING = "VOICE_PLAYING"
    MEDIA_PLAYING = "MEDIA_PLAYING"


@dataclass(frozen=True)
class AudioFeatures:
    energy: float  # intensity, 0-1
    valence: float  # positiveness, 0-1
    danceability: float
    acousticness: float
    tempo: float  # BPM
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "AudioFeatures":
        return cls(
            energy=float(data["energy"]),
            valence=float(data["valence"]),
            danceability=float(data["danceability"]),
            acousticness=float(data["acousticness"]),
            tempo=float(data["tempo"]),
            description=str(data.get("description") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "energy": self.energy,
            "valence": self.valence,
            "danceability": self.danceability,
            "acousticness": self.acousticness,
            "tempo": self.tempo,
            "description": self.description,
        }


@dataclass
class UploadedFile:
    name: str
    size: int
    content_type: str
    data: bytes = field(repr=False)


@dataclass
class Track:
    id: str
    name: str
    size: int
    content_type: str
    data: bytes = field(repr=False)
    status: AnalysisStatus = AnalysisStatus.IDLE
    features: Optional[AudioFeatures] = None
    cluster_id: Optional[int] = None
    error: Optional[str] = None

    def start_analysis(self):
        if self.status != AnalysisStatus.IDLE:
            raise ValueError(f"Track {self.id} cannot be analyzed from status {self.status.value}")
        self.status = AnalysisStatus.ANALYZING

    def complete(self, features: AudioFeatures):
        if self.status != AnalysisStatus.ANALYZING:
            raise ValueError(f"Track {self.id} cannot complete from status {self.status.value}")
        self.status = AnalysisStatus.COMPLETED
        self.features = features
        self.error = None

    def fail(self, message: str):
        if self.status != AnalysisStatus.ANALYZING:
            raise ValueError(f"Track {self.id} cannot fail from status {self.status.value}")
        self.status = AnalysisStatus.ERROR
        self.error = message
        self.features = None

    @property
    def is_eligible(self) -> bool:
        return self.status == AnalysisStatus.COMPLETED and self.features is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "content_type": self.content_type,
            "status": self.status.value,
            "features": self.features.to_dict() if self.features else None,
            "cluster_id": self.cluster_id,
            "error": self.error,
        }


@dataclass(frozen=True)
class Cluster:
    id: int
    name: str
    color: str
    centroid: tuple[float, float]  # (valence, energy)
    size: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "centroid": {"x": self.centroid[0], "y": self.centroid[1]},
            "size": self.size,
        }


@dataclass(frozen=True)
class ScatterPoint:
    track_id: str
    name: str
    x: float  # valence
    y: float  # energy
    size: float  # danceability
    tempo: float
    cluster_id: Optional[int]


@dataclass(frozen=True)
class PlayerSnapshot:
    track_id: Optional[str]
    phase: PlaybackPhase
    is_playing: bool
    is_paused: bool
    is_loading_voice: bool
    current_time: float
    duration: float

    def to_dict(self) -> dict:
        return {
            "track_id": self.track_id,
            "phase": self.phase.value,
            "is_playing": self.is_playing,
            "is_paused": self.is_paused,
            "is_loading_voice": self.is_loading_voice,
            "current_time": self.current_time,
            "duration": self.duration,
        }
