import asyncio
import logging
from typing import Any, Awaitable, Callable

import socketio

import config
from db.database import SessionStore
from processing.summarizer import Summarizer
from server.payloads import BadPayload, decode_audio_chunk, parse_start, parse_stop, parse_text
from server.session_fsm import MakeTranscriber, SessionFSM

logger = logging.getLogger(__name__)


class ConnectionHandler:
    """Binds the socket events of one connection to its SessionFSM.

    Events are processed one at a time in arrival order. A disconnect while a
    finalize is running waits for that finalize instead of starting another
    one, and finalize itself is shielded from cancellation of the connection.
    """

    def __init__(self, sid: str, send: Callable[[str, Any], Awaitable[None]],
                 store: SessionStore, summarizer: Summarizer,
                 transcriber_factory: MakeTranscriber, *,
                 transcribe_timeout: float = config.TRANSCRIBE_TIMEOUT_SECS,
                 summarize_timeout: float = config.SUMMARIZE_TIMEOUT_SECS):
        self.sid = sid
        self.connected = True
        self._send = send
        self._lock = asyncio.Lock()
        self._finalize_task: asyncio.Future | None = None
        self.fsm = SessionFSM(
            store, summarizer, transcriber_factory, self.emit,
            transcribe_timeout=transcribe_timeout,
            summarize_timeout=summarize_timeout,
            label=sid,
        )

    async def emit(self, event: str, data: Any = None):
        if not self.connected:
            logger.debug("%s: dropping '%s', client is gone", self.sid, event)
            return
        await self._send(event, data)

    async def on_start(self, data):
        try:
            payload = parse_start(data)
        except BadPayload as e:
            logger.warning("%s: bad start-transcription payload: %s", self.sid, e)
            return
        async with self._lock:
            await self.fsm.start(
                title=payload.title,
                user_id=payload.user_id,
                recording_type=payload.recording_type,
            )

    async def on_audio_chunk(self, data):
        try:
            chunk, mime_type = decode_audio_chunk(data)
        except BadPayload as e:
            logger.warning("%s: bad audio-chunk payload: %s", self.sid, e)
            return
        async with self._lock:
            await self.fsm.audio_chunk(chunk, mime_type)

    async def on_transcription(self, data):
        try:
            text = parse_text(data)
        except BadPayload as e:
            logger.warning("%s: bad transcription payload: %s", self.sid, e)
            return
        async with self._lock:
            await self.fsm.client_text(text)

    async def on_stop(self, data):
        try:
            payload = parse_stop(data)
        except BadPayload as e:
            logger.warning("%s: bad stop-transcription payload: %s", self.sid, e)
            return
        async with self._lock:
            await self._run_finalize(self.fsm.stop(payload.seconds, payload.session_id))

    async def on_disconnect(self):
        self.connected = False
        task = self._finalize_task
        if task is not None and not task.done():
            logger.info("%s: disconnected during finalize, waiting for it", self.sid)
            await asyncio.shield(task)
            return
        async with self._lock:
            await self._run_finalize(self.fsm.disconnect())

    async def _run_finalize(self, coro):
        self._finalize_task = asyncio.ensure_future(coro)
        await asyncio.shield(self._finalize_task)


def create_socket_server(store: SessionStore, summarizer: Summarizer,
                         transcriber_factory: MakeTranscriber,
                         connections: dict[str, ConnectionHandler],
                         cors_origins: str | list[str] = "*") -> socketio.AsyncServer:
    sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=cors_origins)

    def _sender(sid: str):
        async def send(event: str, data: Any = None):
            await sio.emit(event, data, to=sid)
        return send

    def _handler(sid: str, event: str) -> ConnectionHandler | None:
        handler = connections.get(sid)
        if handler is None:
            logger.warning("%s: '%s' for unknown connection", sid, event)
        return handler

    @sio.event
    async def connect(sid, environ, auth=None):
        logger.info("Client connected: %s", sid)
        connections[sid] = ConnectionHandler(sid, _sender(sid), store, summarizer, transcriber_factory)

    @sio.event
    async def disconnect(sid, *args):
        logger.info("Client disconnected: %s", sid)
        handler = connections.pop(sid, None)
        if handler is not None:
            await handler.on_disconnect()

    @sio.on("start-transcription")
    async def start_transcription(sid, data=None):
        handler = _handler(sid, "start-transcription")
        if handler:
            await handler.on_start(data)

    @sio.on("audio-chunk")
    async def audio_chunk(sid, data=None):
        handler = _handler(sid, "audio-chunk")
        if handler:
            await handler.on_audio_chunk(data)

    @sio.on("transcription")
    async def transcription(sid, data=None):
        handler = _handler(sid, "transcription")
        if handler:
            await handler.on_transcription(data)

    @sio.on("stop-transcription")
    async def stop_transcription(sid, data=None):
        handler = _handler(sid, "stop-transcription")
        if handler:
            await handler.on_stop(data)

    return sio
