"""Validation of client -> server socket payloads."""

import base64
import binascii
import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from db.models import RECORDING_TYPES


class BadPayload(ValueError):
    pass


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StartPayload(_Payload):
    user_id: str | None = Field(None, alias="userId")
    recording_type: Literal["mic", "tab", "both"] | None = Field(None, alias="recordingType")
    title: str | None = None

    @field_validator("user_id", "title", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("recording_type", mode="before")
    @classmethod
    def _unknown_type_to_none(cls, value):
        if value in RECORDING_TYPES:
            return value
        return None


class TextPayload(_Payload):
    text: str


class StopPayload(_Payload):
    duration: float | None = None
    session_id: str | None = Field(None, alias="sessionId")

    @field_validator("duration", mode="before")
    @classmethod
    def _drop_bad_duration(cls, value):
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("session_id", mode="before")
    @classmethod
    def _normalize_session_id(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def seconds(self) -> int:
        if self.duration is None or not math.isfinite(self.duration) or self.duration < 0:
            return 0
        return int(self.duration)


class AudioChunkPayload(_Payload):
    data_url: str | None = Field(None, alias="dataUrl")
    mime_type: str | None = Field(None, alias="mimeType")
    timestamp: float | None = None


def _parse(model: type[_Payload], data: Any) -> _Payload:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise BadPayload(f"Expected an object, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise BadPayload(str(e)) from e


def parse_start(data: Any) -> StartPayload:
    return _parse(StartPayload, data)


def parse_stop(data: Any) -> StopPayload:
    return _parse(StopPayload, data)


def parse_text(data: Any) -> str:
    if isinstance(data, str):
        return data
    return _parse(TextPayload, data).text


def _split_data_url(value: str) -> tuple[str, str | None]:
    """Return (base64 body, mime) for ``data:<mime>;base64,<body>`` or a bare body."""
    if "," not in value:
        return value, None
    header, body = value.split(",", 1)
    mime = None
    if header.startswith("data:"):
        mime = header[len("data:"):].split(";base64", 1)[0] or None
    return body, mime


def decode_audio_chunk(data: Any) -> tuple[bytes, str | None]:
    """Decode an ``audio-chunk`` payload into (bytes, mime type hint).

    Accepts raw binary frames, a base64 string, a data URL string, or an
    object carrying ``dataUrl`` and optionally ``mimeType``.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        chunk = bytes(data)
        if not chunk:
            raise BadPayload("Empty audio chunk")
        return chunk, None

    mime = None
    if isinstance(data, str):
        body, mime = _split_data_url(data)
    elif isinstance(data, dict):
        payload = _parse(AudioChunkPayload, data)
        if not payload.data_url:
            raise BadPayload("Audio chunk has no dataUrl")
        body, mime = _split_data_url(payload.data_url)
        mime = payload.mime_type or mime
    else:
        raise BadPayload(f"Unsupported audio chunk payload {type(data).__name__}")

    body = body.strip()
    if not body:
        raise BadPayload("Audio chunk has no base64 data")
    try:
        chunk = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise BadPayload(f"Audio chunk is not valid base64: {e}") from e
    if not chunk:
        raise BadPayload("Empty audio chunk")
    return chunk, mime
