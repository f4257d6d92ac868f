import logging
from dataclasses import dataclass, field

import librosa  # ty: ignore[unresolved-import]
import numpy as np
from models import AudioFeatures

logger = logging.getLogger(__name__)

# Voice oracle output: raw PCM, 16-bit signed, mono, 24kHz
VOICE_SAMPLE_RATE = 24000
VOICE_CHANNELS = 1


@dataclass
class Waveform:
    samples: np.ndarray = field(repr=False)  # float32, shape (frames, channels)
    sample_rate: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) / self.sample_rate


def decode_pcm16(data: bytes, sample_rate: int = VOICE_SAMPLE_RATE, channels: int = VOICE_CHANNELS) -> Waveform:
    """Decode little-endian signed 16-bit PCM into a float32 waveform in [-1, 1)."""
    usable = len(data) - (len(data) % (2 * channels))
    pcm = np.frombuffer(data[:usable], dtype="<i2")
    samples = (pcm.astype(np.float32) / 32768.0).reshape(-1, channels)
    return Waveform(samples=samples, sample_rate=sample_rate)


def load_media(file_path: str) -> Waveform:
    """Decode an uploaded audio file for playback using librosa."""
    logger.info(f"Decoding media from {file_path}")
    y, sr = librosa.load(file_path, sr=None, mono=False)
    if y.ndim == 1:
        samples = y.reshape(-1, 1)
    else:
        # librosa returns (channels, frames)
        samples = y.T
    return Waveform(samples=np.ascontiguousarray(samples, dtype=np.float32), sample_rate=int(sr))


def feature_vector(features: AudioFeatures) -> np.ndarray:
    """Clustering vector. Tempo is left out so BPM does not dominate the distance."""
    return np.array(
        [
            features.energy,
            features.valence,
            features.danceability,
            features.acousticness,
        ],
        dtype=float,
    )


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.sqrt(np.sum((a - b) ** 2)))
