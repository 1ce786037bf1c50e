import json
import logging

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse, Response

from db.database import SessionStore, StoreUnavailable
from db.models import SESSION_STATUSES, session_to_json
from processing.summarizer import Summarizer
from processing.transcriber import TranscriberFactory

logger = logging.getLogger(__name__)

NO_TRANSCRIPT_TEXT = "No transcript available"


def create_router(store: SessionStore, transcriber_factory: TranscriberFactory,
                  summarizer: Summarizer, connections: dict) -> APIRouter:
    router = APIRouter()

    def _get_or_404(session_id: str) -> dict:
        try:
            session = store.find(session_id)
        except StoreUnavailable as e:
            logger.error("Error loading session %s: %s", session_id, e)
            raise HTTPException(503, "Session store unavailable")
        if not session:
            raise HTTPException(404, "Session not found")
        return session

    # -- Status --

    @router.get("/status")
    def get_status():
        speech_client = transcriber_factory.speech_client
        return {
            "transcriber": transcriber_factory.mode,
            "speech_provider": speech_client.name if speech_client else None,
            "llm_provider": summarizer.provider,
            "active_connections": len(connections),
        }

    # -- Sessions --

    @router.get("/sessions")
    def list_sessions(limit: int = Query(10, ge=1, le=100),
                      offset: int = Query(0, ge=0),
                      status: str | None = None):
        if status and status not in SESSION_STATUSES:
            raise HTTPException(400, f"Unknown status '{status}'")
        try:
            sessions = store.list_sessions(limit=limit, offset=offset, status=status)
        except StoreUnavailable as e:
            logger.error("Error listing sessions: %s", e)
            raise HTTPException(503, "Session store unavailable")
        return {"sessions": [session_to_json(s) for s in sessions]}

    @router.get("/sessions/{session_id}")
    def get_session(session_id: str):
        return session_to_json(_get_or_404(session_id))

    @router.get("/sessions/{session_id}/download")
    def download_transcript(session_id: str):
        session = _get_or_404(session_id)
        return PlainTextResponse(
            session["transcript"] or NO_TRANSCRIPT_TEXT,
            headers={
                "Content-Disposition": f'attachment; filename="transcript-{session_id[:8]}.txt"',
            },
        )

    @router.get("/sessions/{session_id}/download-json")
    def download_json(session_id: str):
        session = _get_or_404(session_id)
        return Response(
            json.dumps(session_to_json(session), indent=2, ensure_ascii=False),
            media_type="application/json",
            headers={
                "Content-Disposition": f'attachment; filename="session-{session_id[:8]}.json"',
            },
        )

    @router.delete("/sessions/{session_id}")
    def delete_session(session_id: str):
        _get_or_404(session_id)
        try:
            store.delete(session_id)
        except StoreUnavailable as e:
            logger.error("Error deleting session %s: %s", session_id, e)
            raise HTTPException(500, "Failed to delete session")
        return {"success": True}

    return router
