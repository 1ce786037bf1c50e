from pathlib import Path

import pytest

from processing.prompts import DIARIZATION_PROMPT
from processing.speech import SpeechClient, TranscribeFailed
from processing.transcoder import TranscodeFailed
from processing.transcriber import (
    NO_AUDIO_TEXT,
    BatchTranscriber,
    MockTranscriber,
    TranscriberFactory,
    failure_text,
)


class FakeTranscoder:
    def __init__(self, error=None):
        self.error = error
        self.sources = []

    def transcode_file(self, source_path, output_path):
        source_path = Path(source_path)
        self.sources.append((source_path.suffix, source_path.read_bytes()))
        if self.error:
            raise self.error
        Path(output_path).write_bytes(b"RIFF-canonical")
        return output_path


class FakeSpeechClient(SpeechClient):
    name = "fake"

    def __init__(self, text="SPEAKER_1: hello there", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def transcribe(self, wav_path, prompt=None):
        self.calls.append((Path(wav_path).read_bytes(), prompt))
        if self.error:
            raise self.error
        return self.text


def test_mock_reports_partials_and_final():
    partials, finals = [], []
    transcriber = MockTranscriber(on_partial=partials.append, on_final=finals.append)

    transcriber.write(b"a")
    transcriber.write(b"bc")
    text = transcriber.stop()

    assert len(partials) == 2
    assert all(p.startswith(" (mock ") for p in partials)
    assert text.startswith("Mock final transcript (")
    assert text.count("(mock ") == 2
    assert finals == [text]
    assert transcriber.bytes_received == 3
    assert transcriber.chunks_received == 2


def test_stop_is_idempotent():
    finals = []
    transcriber = MockTranscriber(on_final=finals.append)
    transcriber.write(b"x")

    first = transcriber.stop()
    second = transcriber.stop()

    assert first
    assert second == ""
    assert finals == [first]
    assert transcriber.stopped


def test_writes_after_stop_are_dropped():
    partials = []
    transcriber = MockTranscriber(on_partial=partials.append)
    transcriber.stop()

    transcriber.write(b"late")

    assert partials == []
    assert transcriber.bytes_received == 0


def test_batch_without_audio():
    finals = []
    speech = FakeSpeechClient()
    transcriber = BatchTranscriber(speech, FakeTranscoder(), on_final=finals.append)

    assert transcriber.stop() == NO_AUDIO_TEXT
    assert finals == [NO_AUDIO_TEXT]
    assert speech.calls == []


def test_batch_transcribes_concatenated_chunks(tmp_path):
    transcoder = FakeTranscoder()
    speech = FakeSpeechClient()
    transcriber = BatchTranscriber(
        speech, transcoder, mime_type="audio/ogg;codecs=opus", temp_dir=str(tmp_path),
    )

    for chunk in (b"one-", b"two-", b"three"):
        transcriber.write(chunk)
    text = transcriber.stop()

    assert text == "SPEAKER_1: hello there"
    assert transcoder.sources == [(".ogg", b"one-two-three")]
    assert speech.calls == [(b"RIFF-canonical", DIARIZATION_PROMPT)]
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize("transcoder, speech", [
    (FakeTranscoder(error=TranscodeFailed("ffmpeg exited 1")), FakeSpeechClient()),
    (FakeTranscoder(), FakeSpeechClient(error=TranscribeFailed("Gemini API failed: 500"))),
])
def test_batch_failure_is_reported_as_text(tmp_path, transcoder, speech):
    errors, finals = [], []
    transcriber = BatchTranscriber(
        speech, transcoder, on_error=errors.append, on_final=finals.append,
        temp_dir=str(tmp_path),
    )
    transcriber.write(b"audio")

    text = transcriber.stop()

    assert text.startswith("[Transcription Failed: ")
    assert text == failure_text(errors[0])
    assert finals == [text]
    assert list(tmp_path.iterdir()) == []


def test_factory_modes():
    speech = FakeSpeechClient()

    assert isinstance(TranscriberFactory("mock")(), MockTranscriber)
    batch = TranscriberFactory("BATCH", speech_client=speech)(mime_type="audio/webm")
    assert isinstance(batch, BatchTranscriber)
    assert batch.speech_client is speech
    assert batch.mime_type == "audio/webm"


def test_factory_rejects_bad_configuration():
    with pytest.raises(ValueError):
        TranscriberFactory("streaming")
    with pytest.raises(ValueError):
        TranscriberFactory("batch")
