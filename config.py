import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    return float(value)


# Paths
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("SCRIBEAI_DATA_DIR", BASE_DIR / "data"))
DB_PATH = Path(os.getenv("SCRIBEAI_DB_PATH", DATA_DIR / "scribeai.db"))

# Server
HOST = os.getenv("SCRIBEAI_HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "3001"))
CORS_ORIGINS = os.getenv("SCRIBEAI_CORS_ORIGINS", "*")

# Audio (canonical PCM handed to speech-to-text)
SAMPLE_RATE = 16000
CHANNELS = 1
SAMPLE_WIDTH = 2

# Transcriber: "mock" emits synthetic partials, "batch" transcribes on stop
TRANSCRIBER_MODE = os.getenv("SCRIBEAI_TRANSCRIBER", "").lower() or (
    "batch" if os.getenv("USE_GEMINI", "").lower() == "true" else "mock"
)
STT_PROVIDER = os.getenv("SCRIBEAI_STT_PROVIDER", "gemini")
TRANSCRIBE_TIMEOUT_SECS = _env_float("SCRIBEAI_TRANSCRIBE_TIMEOUT", 300.0)

# Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_URL = os.getenv(
    "GEMINI_URL", "https://generativelanguage.googleapis.com/v1beta"
)

# Whisper
WHISPER_MODEL = os.getenv("SCRIBEAI_WHISPER_MODEL", "medium")
WHISPER_LANGUAGE = os.getenv("SCRIBEAI_LANGUAGE") or None

# LLM
LLM_PROVIDER = os.getenv("SCRIBEAI_LLM_PROVIDER", "gemini")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
OLLAMA_MODEL = os.getenv("SCRIBEAI_OLLAMA_MODEL", "llama3")
OLLAMA_URL = os.getenv("SCRIBEAI_OLLAMA_URL", "http://localhost:11434")
SUMMARIZE_TIMEOUT_SECS = _env_float("SCRIBEAI_SUMMARIZE_TIMEOUT", 120.0)
