import wave

import pytest

from processing.transcoder import (
    AudioTranscoder,
    TranscodeFailed,
    is_supported_mime,
    suffix_for_mime,
    write_chunks,
)


def _write_wav(path, rate=44100, channels=2, seconds=0.5):
    frames = int(rate * seconds)
    with wave.open(str(path), "wb") as w:
        w.setnchannels(channels)
        w.setsampwidth(2)
        w.setframerate(rate)
        w.writeframes(b"\x10\x00" * frames * channels)
    return path


@pytest.mark.parametrize("mime, suffix", [
    ("audio/webm;codecs=opus", ".webm"),
    ("audio/ogg", ".ogg"),
    ("AUDIO/MP4", ".mp4"),
    ("audio/wav", ".wav"),
    ("audio/flac", ".webm"),
    (None, ".webm"),
])
def test_suffix_for_mime(mime, suffix):
    assert suffix_for_mime(mime) == suffix


def test_is_supported_mime():
    assert is_supported_mime("audio/webm; codecs=opus")
    assert not is_supported_mime("text/plain")
    assert not is_supported_mime(None)


def test_write_chunks(tmp_path):
    path = write_chunks([b"ab", b"", b"cd"], ".ogg", str(tmp_path))

    assert path.parent == tmp_path
    assert path.name.startswith("scribeai-")
    assert path.suffix == ".ogg"
    assert path.read_bytes() == b"abcd"


def test_transcode_file_produces_canonical_wav(tmp_path):
    source = _write_wav(tmp_path / "in.wav")
    output = tmp_path / "out.wav"

    AudioTranscoder().transcode_file(source, output)

    with wave.open(str(output), "rb") as w:
        assert w.getframerate() == 16000
        assert w.getnchannels() == 1
        assert w.getsampwidth() == 2
        assert abs(w.getnframes() - 8000) <= 10


def test_transcode_from_split_chunks(tmp_path):
    data = _write_wav(tmp_path / "in.wav", rate=48000, channels=1).read_bytes()
    chunks = [data[:100], data[100:1000], data[1000:]]
    output = tmp_path / "out.wav"

    AudioTranscoder().transcode(chunks, output, mime_type="audio/wav")

    with wave.open(str(output), "rb") as w:
        assert w.getframerate() == 16000
        assert w.getnchannels() == 1


def test_empty_source_fails(tmp_path):
    source = tmp_path / "empty.webm"
    source.write_bytes(b"")

    with pytest.raises(TranscodeFailed):
        AudioTranscoder().transcode_file(source, tmp_path / "out.wav")


def test_missing_source_fails(tmp_path):
    with pytest.raises(TranscodeFailed):
        AudioTranscoder().transcode_file(tmp_path / "nope.webm", tmp_path / "out.wav")


def test_undecodable_source_fails(tmp_path):
    source = tmp_path / "garbage.wav"
    source.write_bytes(b"this is not audio at all")

    with pytest.raises(TranscodeFailed):
        AudioTranscoder().transcode_file(source, tmp_path / "out.wav")
