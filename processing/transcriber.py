import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable

from processing.prompts import DIARIZATION_PROMPT
from processing.speech import SpeechClient
from processing.transcoder import AudioTranscoder, suffix_for_mime, write_chunks

logger = logging.getLogger(__name__)

NO_AUDIO_TEXT = "[No audio data received]"

TextCallback = Callable[[str], None]
ErrorCallback = Callable[[Exception], None]


def failure_text(reason) -> str:
    return f"[Transcription Failed: {reason}]"


def _ignore(_text: str):
    pass


class Transcriber(ABC):
    """Per-session audio sink.

    ``write`` may report partial text through ``on_partial``. ``stop`` returns
    the final text and hands the same text to ``on_final`` exactly once; any
    later ``stop`` returns an empty string and calls nothing.
    """

    def __init__(self, on_partial: TextCallback | None = None,
                 on_final: TextCallback | None = None,
                 on_error: ErrorCallback | None = None,
                 mime_type: str | None = None):
        self.on_partial = on_partial or _ignore
        self.on_final = on_final or _ignore
        self.on_error = on_error
        self.mime_type = mime_type
        self.bytes_received = 0
        self.chunks_received = 0
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def write(self, chunk: bytes):
        if self._stopped:
            logger.warning("Dropping %d bytes written after stop", len(chunk))
            return
        self.bytes_received += len(chunk)
        self.chunks_received += 1
        self._accept(chunk)

    def stop(self) -> str:
        if self._stopped:
            return ""
        self._stopped = True
        text = self._finish()
        self.on_final(text)
        return text

    @abstractmethod
    def _accept(self, chunk: bytes):
        raise NotImplementedError

    @abstractmethod
    def _finish(self) -> str:
        raise NotImplementedError


class MockTranscriber(Transcriber):
    """Emits a synthetic token per chunk so the UI can see data flowing."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._tokens: list[str] = []

    def _accept(self, chunk: bytes):
        token = f" (mock {datetime.now().strftime('%H:%M:%S')})"
        self._tokens.append(token)
        self.on_partial(token)

    def _finish(self) -> str:
        header = f"Mock final transcript ({datetime.now().strftime('%Y-%m-%d %H:%M:%S')})"
        return f"{header}\n{''.join(self._tokens).strip()}"


class BatchTranscriber(Transcriber):
    """Buffers the whole recording and transcribes it once on stop."""

    def __init__(self, speech_client: SpeechClient, transcoder: AudioTranscoder,
                 *args, prompt: str = DIARIZATION_PROMPT, temp_dir: str | None = None,
                 **kwargs):
        super().__init__(*args, **kwargs)
        self.speech_client = speech_client
        self.transcoder = transcoder
        self.prompt = prompt
        self.temp_dir = temp_dir
        self._chunks: list[bytes] = []

    def _accept(self, chunk: bytes):
        self._chunks.append(chunk)

    def _finish(self) -> str:
        if not self._chunks:
            return NO_AUDIO_TEXT

        source_path: Path | None = None
        wav_path: Path | None = None
        try:
            source_path = write_chunks(self._chunks, suffix_for_mime(self.mime_type), self.temp_dir)
            wav_path = source_path.with_name(f"{source_path.stem}.pcm.wav")
            logger.info(
                "Transcribing %d chunks (%d bytes) from %s",
                len(self._chunks), self.bytes_received, source_path.name,
            )
            self.transcoder.transcode_file(source_path, wav_path)
            return self.speech_client.transcribe(str(wav_path), prompt=self.prompt)
        except Exception as e:
            logger.error("Batch transcription failed: %s", e)
            if self.on_error is not None:
                self.on_error(e)
            return failure_text(e)
        finally:
            self._chunks.clear()
            for path in (source_path, wav_path):
                if path is not None:
                    path.unlink(missing_ok=True)


class TranscriberFactory:
    """Builds one transcriber per connection for the configured mode."""

    MODES = ("mock", "batch")

    def __init__(self, mode: str = "mock", speech_client: SpeechClient | None = None,
                 transcoder: AudioTranscoder | None = None):
        mode = mode.lower()
        if mode not in self.MODES:
            raise ValueError(f"Unknown transcriber mode '{mode}'")
        if mode == "batch" and speech_client is None:
            raise ValueError("Batch transcription needs a speech client")
        self.mode = mode
        self.speech_client = speech_client
        self.transcoder = transcoder or AudioTranscoder()

    def __call__(self, on_partial: TextCallback | None = None,
                 on_final: TextCallback | None = None,
                 on_error: ErrorCallback | None = None,
                 mime_type: str | None = None) -> Transcriber:
        if self.mode == "batch":
            return BatchTranscriber(
                self.speech_client, self.transcoder,
                on_partial=on_partial, on_final=on_final,
                on_error=on_error, mime_type=mime_type,
            )
        return MockTranscriber(
            on_partial=on_partial, on_final=on_final,
            on_error=on_error, mime_type=mime_type,
        )
