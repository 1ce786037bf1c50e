import base64

import pytest

from server.payloads import BadPayload, decode_audio_chunk, parse_start, parse_stop, parse_text


def test_parse_start_aliases_and_blanks():
    payload = parse_start({"userId": " u1 ", "recordingType": "mic", "title": "  "})

    assert payload.user_id == "u1"
    assert payload.recording_type == "mic"
    assert payload.title is None


def test_parse_start_unknown_recording_type():
    assert parse_start({"recordingType": "screen"}).recording_type is None


def test_parse_start_missing_payload():
    payload = parse_start(None)
    assert (payload.title, payload.user_id, payload.recording_type) == (None, None, None)


def test_parse_start_rejects_non_objects():
    with pytest.raises(BadPayload):
        parse_start(["mic"])


@pytest.mark.parametrize("duration, seconds", [
    (7, 7),
    (7.9, 7),
    ("42", 42),
    (-3, 0),
    ("soon", 0),
    (float("nan"), 0),
    (float("inf"), 0),
    (True, 0),
    (None, 0),
])
def test_parse_stop_duration(duration, seconds):
    assert parse_stop({"duration": duration}).seconds == seconds


def test_parse_stop_session_id():
    assert parse_stop({"sessionId": " abc "}).session_id == "abc"
    assert parse_stop({"sessionId": ""}).session_id is None
    assert parse_stop({}).session_id is None


def test_parse_text():
    assert parse_text("plain") == "plain"
    assert parse_text({"text": "wrapped"}) == "wrapped"
    with pytest.raises(BadPayload):
        parse_text({"words": "x"})
    with pytest.raises(BadPayload):
        parse_text(12)


def test_decode_binary_chunk():
    assert decode_audio_chunk(b"\x00\x01") == (b"\x00\x01", None)
    assert decode_audio_chunk(bytearray(b"ab")) == (b"ab", None)


def test_decode_base64_and_data_url_strings():
    body = base64.b64encode(b"opus frames").decode()

    assert decode_audio_chunk(body) == (b"opus frames", None)
    assert decode_audio_chunk(f"data:audio/webm;codecs=opus;base64,{body}") == (
        b"opus frames", "audio/webm;codecs=opus",
    )


def test_decode_object_with_data_url():
    body = base64.b64encode(b"ogg").decode()

    chunk, mime = decode_audio_chunk({"dataUrl": f"data:audio/ogg;base64,{body}", "timestamp": 1})
    assert (chunk, mime) == (b"ogg", "audio/ogg")

    chunk, mime = decode_audio_chunk({"dataUrl": f"data:audio/ogg;base64,{body}", "mimeType": "audio/webm"})
    assert mime == "audio/webm"


@pytest.mark.parametrize("data", [
    b"",
    "",
    "data:audio/webm;base64,",
    "not base64 at all!",
    {"mimeType": "audio/webm"},
    12345,
    None,
])
def test_decode_rejects_bad_chunks(data):
    with pytest.raises(BadPayload):
        decode_audio_chunk(data)
