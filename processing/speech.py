import base64
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import requests

import config

logger = logging.getLogger(__name__)

_model_cache = {}


class TranscribeFailed(RuntimeError):
    pass


class SpeechClient(ABC):
    """Turns a canonical PCM WAV file into transcript text."""

    name = "speech"

    @abstractmethod
    def transcribe(self, wav_path: str, prompt: str | None = None) -> str:
        raise NotImplementedError


class GeminiSpeechClient(SpeechClient):
    name = "gemini"

    def __init__(self, api_key: str = None, model: str = None,
                 base_url: str = None, timeout: float = 300):
        self.api_key = api_key
        self.model = model or config.GEMINI_MODEL
        self.base_url = (base_url or config.GEMINI_URL).rstrip("/")
        self.timeout = timeout

    def transcribe(self, wav_path: str, prompt: str | None = None) -> str:
        if not self.api_key:
            raise TranscribeFailed("GEMINI_API_KEY is not set")

        wav_bytes = Path(wav_path).read_bytes()
        payload = {
            "contents": [{
                "parts": [
                    {
                        "inlineData": {
                            "mimeType": "audio/wav",
                            "data": base64.b64encode(wav_bytes).decode("ascii"),
                        }
                    },
                    {"text": prompt or "Transcribe this audio."},
                ]
            }]
        }

        logger.info("Sending %d bytes of audio to Gemini (%s)...", len(wav_bytes), self.model)
        try:
            response = requests.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TranscribeFailed(f"Gemini request failed: {e}") from e

        if not response.ok:
            raise TranscribeFailed(f"Gemini API failed: {response.status_code} {response.text[:200]}")

        text = extract_gemini_text(response.json())
        if not text:
            raise TranscribeFailed("Gemini response contained no transcript text")
        return text


def extract_gemini_text(data: dict) -> str:
    """Join the text parts of the first candidate of a generateContent response."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts).strip()


class WhisperSpeechClient(SpeechClient):
    name = "whisper"

    def __init__(self, model_size: str = "medium", language: str | None = None):
        self.model_size = model_size
        self.language = language
        self._model = None

    def _load_model(self):
        if self.model_size in _model_cache:
            self._model = _model_cache[self.model_size]
            return

        from faster_whisper import WhisperModel

        # Detect best device
        device = "cpu"
        compute_type = "int8"
        try:
            import torch
            if torch.cuda.is_available():
                device = "cuda"
                compute_type = "float16"
        except ImportError:
            pass

        logger.info(
            "Loading Whisper model '%s' on %s (compute_type=%s)...",
            self.model_size, device, compute_type,
        )
        self._model = WhisperModel(
            self.model_size,
            device=device,
            compute_type=compute_type,
        )
        _model_cache[self.model_size] = self._model
        logger.info("Whisper model loaded")

    @property
    def is_loaded(self) -> bool:
        return self._model is not None or self.model_size in _model_cache

    def transcribe(self, wav_path: str, prompt: str | None = None) -> str:
        # prompt is ignored: faster-whisper does no speaker tagging
        if self._model is None:
            self._load_model()

        logger.info("Transcribing %s with Whisper...", Path(wav_path).name)
        try:
            segments, info = self._model.transcribe(
                str(wav_path),
                language=self.language,
                beam_size=5,
                vad_filter=True,
            )
            texts = [segment.text.strip() for segment in segments]
        except Exception as e:
            raise TranscribeFailed(f"Whisper failed: {e}") from e

        texts = [t for t in texts if t]
        logger.info("Whisper finished: %d segments, language=%s", len(texts), info.language)
        return "\n".join(texts)


def create_speech_client(provider: str = None) -> SpeechClient:
    provider = (provider or config.STT_PROVIDER).lower()
    if provider == "whisper":
        return WhisperSpeechClient(
            model_size=config.WHISPER_MODEL,
            language=config.WHISPER_LANGUAGE,
        )
    if provider == "gemini":
        return GeminiSpeechClient(
            api_key=config.GEMINI_API_KEY,
            model=config.GEMINI_MODEL,
            timeout=config.TRANSCRIBE_TIMEOUT_SECS,
        )
    raise ValueError(f"Unknown speech-to-text provider '{provider}'")
