import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from pydub import AudioSegment

import config

logger = logging.getLogger(__name__)

# Browser MediaRecorder containers we know how to hand to ffmpeg
MIME_SUFFIXES = {
    "audio/webm": ".webm",
    "video/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mp4": ".mp4",
    "audio/aac": ".aac",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
}
DEFAULT_SUFFIX = ".webm"


class TranscodeFailed(RuntimeError):
    pass


def suffix_for_mime(mime_type: str | None) -> str:
    """File suffix for a mime type such as ``audio/webm;codecs=opus``."""
    if not mime_type:
        return DEFAULT_SUFFIX
    base = mime_type.split(";", 1)[0].strip().lower()
    return MIME_SUFFIXES.get(base, DEFAULT_SUFFIX)


def is_supported_mime(mime_type: str | None) -> bool:
    if not mime_type:
        return False
    return mime_type.split(";", 1)[0].strip().lower() in MIME_SUFFIXES


def write_chunks(chunks: Iterable[bytes], suffix: str = DEFAULT_SUFFIX,
                 directory: str | None = None) -> Path:
    """Concatenate ``chunks`` into a uniquely named temp file and return its path."""
    fd, name = tempfile.mkstemp(prefix="scribeai-", suffix=suffix, dir=directory)
    with os.fdopen(fd, "wb") as f:
        for chunk in chunks:
            f.write(chunk)
    return Path(name)


class AudioTranscoder:
    """Converts container-framed audio into 16 kHz mono 16-bit PCM WAV.

    pydub decodes WAV itself and shells out to ffmpeg for everything else
    (WebM/Opus, MP4/AAC, Ogg).
    """

    def __init__(self, sample_rate: int = config.SAMPLE_RATE,
                 channels: int = config.CHANNELS,
                 sample_width: int = config.SAMPLE_WIDTH):
        self.sample_rate = sample_rate
        self.channels = channels
        self.sample_width = sample_width

    def transcode_file(self, source_path: Path, output_path: Path) -> Path:
        source_path = Path(source_path)
        output_path = Path(output_path)
        if not source_path.exists() or source_path.stat().st_size == 0:
            raise TranscodeFailed(f"No audio to transcode in {source_path.name}")

        fmt = "wav" if source_path.suffix == ".wav" else None
        try:
            audio = AudioSegment.from_file(str(source_path), format=fmt)
            audio = (
                audio.set_frame_rate(self.sample_rate)
                .set_channels(self.channels)
                .set_sample_width(self.sample_width)
            )
            audio.export(str(output_path), format="wav")
        except Exception as e:
            # pydub surfaces ffmpeg exits as CouldntDecodeError and a missing
            # ffmpeg binary as OSError
            raise TranscodeFailed(f"Could not transcode {source_path.name}: {e}") from e

        logger.info(
            "Transcoded %s -> %s (%.1fs of audio)",
            source_path.name, output_path.name, len(audio) / 1000,
        )
        return output_path

    def transcode(self, chunks: Iterable[bytes], output_path: Path,
                  mime_type: str | None = None) -> Path:
        source_path = write_chunks(chunks, suffix_for_mime(mime_type))
        try:
            return self.transcode_file(source_path, output_path)
        finally:
            source_path.unlink(missing_ok=True)
