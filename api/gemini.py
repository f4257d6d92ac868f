import json
import logging
import os
from enum import Enum

from audio import Waveform, decode_pcm16
from google import genai
from google.genai import errors, types
from models import AudioFeatures

logger = logging.getLogger(__name__)

GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-3-flash-preview")
GEMINI_TTS_MODEL = os.environ.get("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts")
GEMINI_VOICE = os.environ.get("GEMINI_VOICE", "Kore")

SYSTEM_INSTRUCTION = """
You are an expert musicologist AI. Your task is to listen to audio files and extract precise audio features for clustering purposes.
Analyze the audio for the following:
1. Energy (0.0 - 1.0): Intensity and activity.
2. Valence (0.0 - 1.0): Musical positiveness (sad/depressed to happy/cheerful).
3. Danceability (0.0 - 1.0): Suitability for dancing.
4. Acousticness (0.0 - 1.0): Likelihood the track is acoustic.
5. Tempo: Estimated Beats Per Minute (BPM).
6. Description: A vivid, 15-20 word description capturing the specific mood, instrumentation, and genre nuances (e.g., "A melancholic lo-fi hip-hop track with dusty piano samples and a laid-back boom-bap beat").
"""

ANALYSIS_PROMPT = "Analyze this audio track and return its musical features in JSON format."

FEATURE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "energy": types.Schema(type=types.Type.NUMBER, description="Energy level from 0.0 to 1.0"),
        "valence": types.Schema(type=types.Type.NUMBER, description="Valence level from 0.0 to 1.0"),
        "danceability": types.Schema(type=types.Type.NUMBER, description="Danceability level from 0.0 to 1.0"),
        "acousticness": types.Schema(type=types.Type.NUMBER, description="Acousticness level from 0.0 to 1.0"),
        "tempo": types.Schema(type=types.Type.NUMBER, description="Estimated BPM"),
        "description": types.Schema(type=types.Type.STRING, description="A short mood description"),
    },
    required=["energy", "valence", "danceability", "acousticness", "tempo", "description"],
)


class OracleCategory(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    OTHER = "other"


class OracleError(Exception):
    def __init__(self, category: OracleCategory, message: str):
        super().__init__(message)
        self.category = category
        self.message = message


def _categorize(exc: errors.APIError) -> OracleCategory:
    status = (exc.status or "").upper()
    if exc.code == 404 or status == "NOT_FOUND":
        return OracleCategory.NOT_FOUND
    if exc.code == 400 or status == "INVALID_ARGUMENT":
        return OracleCategory.INVALID_ARGUMENT
    return OracleCategory.OTHER


def make_client() -> genai.Client:
    return genai.Client(api_key=os.environ.get("GEMINI_API_KEY"))


class FeatureExtractor:
    """Feature-extraction oracle: raw audio bytes in, AudioFeatures out."""

    def __init__(self, client: genai.Client | None = None, model: str = GEMINI_MODEL):
        self._client = client
        self.model = model

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = make_client()
        return self._client

    async def extract(self, data: bytes, mime_type: str) -> AudioFeatures:
        logger.info(f"Requesting features for {len(data)} bytes ({mime_type}) from {self.model}")
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=data, mime_type=mime_type),
                    ANALYSIS_PROMPT,
                ],
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_INSTRUCTION,
                    response_mime_type="application/json",
                    response_schema=FEATURE_SCHEMA,
                ),
            )
        except errors.APIError as e:
            raise OracleError(_categorize(e), e.message or str(e)) from e

        text = response.text
        if not text:
            raise OracleError(OracleCategory.OTHER, "No response from Gemini")
        try:
            return AudioFeatures.from_dict(json.loads(text))
        except (ValueError, KeyError, TypeError) as e:
            raise OracleError(OracleCategory.OTHER, f"Malformed analysis response: {e}") from e


class SpeechSynthesizer:
    """Voice-synthesis oracle: caption text in, decoded waveform out."""

    def __init__(self, client: genai.Client | None = None, model: str = GEMINI_TTS_MODEL, voice: str = GEMINI_VOICE):
        self._client = client
        self.model = model
        self.voice = voice

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = make_client()
        return self._client

    async def synthesize(self, text: str) -> Waveform:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=text,
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.voice),
                        ),
                    ),
                ),
            )
        except errors.APIError as e:
            raise OracleError(_categorize(e), e.message or str(e)) from e

        data = None
        if response.candidates:
            content = response.candidates[0].content
            if content and content.parts and content.parts[0].inline_data:
                data = content.parts[0].inline_data.data
        if not data:
            raise OracleError(OracleCategory.OTHER, "No audio data returned from Gemini TTS.")
        return decode_pcm16(data)
