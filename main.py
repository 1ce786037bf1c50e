import logging
import socket
import sys
import threading

import uvicorn

import config
from db.database import SessionStore, StoreUnavailable
from processing.speech import WhisperSpeechClient, create_speech_client
from processing.summarizer import Summarizer
from processing.transcoder import AudioTranscoder
from processing.transcriber import TranscriberFactory
from server.app import create_app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("scribeai")


def find_available_port(start: int, end: int) -> int:
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((config.HOST, port))
                return port
            except OSError:
                continue
    raise RuntimeError(f"No free port between {start} and {end}")


def build_transcriber_factory() -> TranscriberFactory:
    if config.TRANSCRIBER_MODE != "batch":
        logger.info("Using mock transcriber (set SCRIBEAI_TRANSCRIBER=batch for real transcription)")
        return TranscriberFactory("mock")

    speech_client = create_speech_client(config.STT_PROVIDER)
    logger.info("Using batch transcriber with %s speech-to-text", speech_client.name)

    if isinstance(speech_client, WhisperSpeechClient):
        # Load Whisper model in background
        def preload_whisper():
            try:
                logger.info("Preloading Whisper model in background...")
                speech_client._load_model()
            except Exception as e:
                logger.warning("Could not preload Whisper: %s", e)

        threading.Thread(target=preload_whisper, daemon=True).start()

    return TranscriberFactory("batch", speech_client=speech_client, transcoder=AudioTranscoder())


def main():
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)

    try:
        port = find_available_port(config.PORT, config.PORT + 20)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if port != config.PORT:
        logger.info("Port %d in use, using %d", config.PORT, port)
    config.PORT = port

    try:
        store = SessionStore(config.DB_PATH)
    except StoreUnavailable as e:
        logger.error("Could not open session store at %s: %s", config.DB_PATH, e)
        sys.exit(1)

    if not config.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; Gemini transcription and summaries will be unavailable")

    summarizer = Summarizer(
        provider=config.LLM_PROVIDER,
        api_key=config.ANTHROPIC_API_KEY,
        model=config.ANTHROPIC_MODEL,
        ollama_url=config.OLLAMA_URL,
        ollama_model=config.OLLAMA_MODEL,
        gemini_api_key=config.GEMINI_API_KEY,
        gemini_model=config.GEMINI_MODEL,
        timeout=config.SUMMARIZE_TIMEOUT_SECS,
    )
    app = create_app(store, build_transcriber_factory(), summarizer)

    logger.info("ScribeAI backend running on http://%s:%d", config.HOST, config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level="warning")


if __name__ == "__main__":
    main()
