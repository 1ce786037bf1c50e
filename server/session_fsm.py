"""Lifecycle of the recording sessions on one socket connection.

IDLE -> RECORDING -> FINALIZING -> COMPLETED | RECOVERED | ERROR

Client text and audio are accepted while IDLE or RECORDING. Finalize drains
the transcriber into the transcript buffer and then either updates the
session row (summarized), creates a recovery row (no session id, but text),
or does nothing (no session id, no text). Terminal states ignore every
event except a new start-transcription, which opens a fresh session, so a
finished session is never written twice from the same connection.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable

from db.database import SessionStore, StoreError
from db.models import RECOVERED_TITLE
from processing.summarizer import Summarizer, degraded_summary
from processing.transcriber import Transcriber, failure_text
from processing.transcript_buffer import TranscriptBuffer

logger = logging.getLogger(__name__)

RECOVERED_SUMMARY = "Session recovered without summary."
EMPTY_TRANSCRIPT_SUMMARY = degraded_summary("transcript is empty")

Emit = Callable[[str, Any], Awaitable[None]]
MakeTranscriber = Callable[..., Transcriber]


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    RECOVERED = "recovered"
    ERROR = "error"


ACCEPTING_STATES = frozenset({SessionState.IDLE, SessionState.RECORDING})
TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.RECOVERED, SessionState.ERROR})


def download_url(session_id: str) -> str:
    return f"/api/sessions/{session_id}/download"


class SessionFSM:
    def __init__(self, store: SessionStore, summarizer: Summarizer,
                 transcriber_factory: MakeTranscriber, emit: Emit, *,
                 transcribe_timeout: float = 300, summarize_timeout: float = 120,
                 clock: Callable[[], float] = time.monotonic, label: str = "session"):
        self._store = store
        self._summarizer = summarizer
        self._transcriber_factory = transcriber_factory
        self._emit = emit
        self._transcribe_timeout = transcribe_timeout
        self._summarize_timeout = summarize_timeout
        self._clock = clock
        self.label = label

        self.state = SessionState.IDLE
        self.session_id: str | None = None
        self.transcriber: Transcriber | None = None
        self.buffer = TranscriptBuffer(on_append=self._queue_echo)
        self._started_at: float | None = None
        # Emits produced by synchronous callbacks, flushed in order
        self._outbox: list[tuple[str, Any]] = []

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def accepting(self) -> bool:
        return self.state in ACCEPTING_STATES

    def elapsed_seconds(self) -> int:
        if self._started_at is None:
            return 0
        return max(0, int(self._clock() - self._started_at))

    # -- emission --

    def _queue_echo(self, fragment: str):
        self._outbox.append(("transcription", {"text": fragment}))

    def _on_partial(self, text: str):
        cleaned = text.strip()
        if cleaned:
            # Echoed to the client only; the final text already carries the partials
            self._outbox.append(("transcription", {"text": cleaned}))

    def _on_final(self, text: str):
        # Runs on the worker thread that called stop(); the caller appends the text
        logger.debug("%s: transcriber final text (%d chars)", self.label, len(text))

    def _on_error(self, error: Exception):
        logger.warning("%s: transcriber error: %s", self.label, error)

    async def _flush(self):
        while self._outbox:
            event, data = self._outbox.pop(0)
            await self._emit(event, data)

    async def _send(self, event: str, data: Any = None):
        await self._flush()
        await self._emit(event, data)

    def _new_transcriber(self, mime_type: str | None = None) -> Transcriber:
        return self._transcriber_factory(
            on_partial=self._on_partial,
            on_final=self._on_final,
            on_error=self._on_error,
            mime_type=mime_type,
        )

    # -- events --

    async def start(self, title: str | None = None, user_id: str | None = None,
                    recording_type: str | None = None) -> bool:
        if self.is_terminal:
            # A finished session never takes more writes; a new Start opens a fresh one
            logger.info("%s: new start-transcription after %s session", self.label, self.state.value)
            self._reset()
        elif self.state is not SessionState.IDLE:
            logger.warning("%s: start-transcription ignored in state %s", self.label, self.state.value)
            return False

        try:
            row = await asyncio.to_thread(
                self._store.create,
                title=title,
                user_id=user_id,
                recording_type=recording_type,
                status="pending",
            )
        except StoreError as e:
            logger.error("%s: could not create session: %s", self.label, e)
            await self._send("error", {"message": "Failed to start session"})
            return False

        self.session_id = row["id"]
        self._started_at = self._clock()
        if self.transcriber is None:
            self.transcriber = self._new_transcriber()
        self.state = SessionState.RECORDING
        logger.info("%s: session %s started", self.label, self.session_id)
        await self._send("session-started", {"sessionId": self.session_id})
        return True

    async def audio_chunk(self, chunk: bytes, mime_type: str | None = None):
        if not self.accepting:
            logger.debug("%s: audio-chunk ignored in state %s", self.label, self.state.value)
            return

        if self.transcriber is None:
            logger.warning("%s: audio-chunk before start-transcription, creating transcriber", self.label)
            self.transcriber = self._new_transcriber(mime_type)
        elif mime_type and not self.transcriber.mime_type:
            self.transcriber.mime_type = mime_type

        self.transcriber.write(chunk)
        await self._flush()

    async def client_text(self, text: str):
        if not self.accepting:
            logger.debug("%s: transcription ignored in state %s", self.label, self.state.value)
            return
        self.buffer.append(text)
        await self._flush()

    async def stop(self, duration: int = 0, session_id: str | None = None):
        if not self.accepting:
            logger.info("%s: stop-transcription ignored in state %s", self.label, self.state.value)
            return
        await self._finalize(duration, session_id)

    async def disconnect(self):
        if not self.accepting:
            return
        await self._finalize(self.elapsed_seconds(), None)

    # -- finalize --

    async def _finalize(self, duration: int, requested_session_id: str | None):
        self.state = SessionState.FINALIZING
        await self._drain_transcriber()

        session_id = requested_session_id or self.session_id
        transcript = self.buffer.text.strip()
        logger.info(
            "%s: finalizing session=%s transcript_chars=%d duration=%ds",
            self.label, session_id, len(transcript), duration,
        )

        try:
            if session_id is None:
                if not transcript:
                    logger.info("%s: stop with no session and no transcript, nothing to save", self.label)
                    self._reset()
                    return
                await self._recover(transcript, duration)
            else:
                await self._complete(session_id, transcript, duration)
        finally:
            self.buffer.clear()

    async def _drain_transcriber(self):
        transcriber, self.transcriber = self.transcriber, None
        if transcriber is None:
            return
        if transcriber.bytes_received == 0:
            logger.debug("%s: transcriber received no audio, discarding", self.label)
            return

        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(transcriber.stop), timeout=self._transcribe_timeout
            )
        except asyncio.TimeoutError:
            logger.error("%s: transcriber did not finish within %gs", self.label, self._transcribe_timeout)
            text = failure_text(f"timed out after {self._transcribe_timeout:g}s")

        self.buffer.append(text)
        await self._flush()

    async def _recover(self, transcript: str, duration: int):
        logger.warning("%s: transcript without a session id, saving a recovery session", self.label)
        try:
            row = await asyncio.to_thread(
                self._store.create,
                title=RECOVERED_TITLE,
                status="recovering",
                transcript=transcript,
                duration=duration,
            )
        except StoreError as e:
            logger.error("%s: recovery failed: %s", self.label, e)
            self.state = SessionState.ERROR
            await self._send("error", {"message": "Recovery failed."})
            return

        self.state = SessionState.RECOVERED
        logger.info("%s: recovered transcript saved to session %s", self.label, row["id"])
        await self._send("completed", {
            "sessionId": row["id"],
            "downloadUrl": download_url(row["id"]),
            "summary": RECOVERED_SUMMARY,
        })

    async def _complete(self, session_id: str, transcript: str, duration: int):
        await self._send("processing")
        # Must happen before the summarize/update awaits below
        self.session_id = None

        summary = await self._summarize(transcript)
        try:
            row = await asyncio.to_thread(
                self._store.update,
                session_id,
                transcript=transcript,
                summary=summary,
                status="completed",
                duration=duration,
            )
        except StoreError as e:
            logger.error("%s: failed to save session %s: %s", self.label, session_id, e)
            self.state = SessionState.ERROR
            await self._send("error", {"message": f"Failed to save session: {e}"})
            return

        self.state = SessionState.COMPLETED
        logger.info("%s: session %s completed", self.label, session_id)
        await self._send("completed", {
            "sessionId": row["id"],
            "downloadUrl": download_url(row["id"]),
            "summary": row["summary"],
        })

    async def _summarize(self, transcript: str) -> str:
        if not transcript:
            return EMPTY_TRANSCRIPT_SUMMARY
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._summarizer.summarize, transcript),
                timeout=self._summarize_timeout,
            )
        except asyncio.TimeoutError:
            logger.error("%s: summarizer did not finish within %gs", self.label, self._summarize_timeout)
            return degraded_summary(f"timed out after {self._summarize_timeout:g}s")
        except Exception as e:
            logger.exception("%s: summarizer raised", self.label)
            return degraded_summary(e)

    def _reset(self):
        self.session_id = None
        self._started_at = None
        self.state = SessionState.IDLE
