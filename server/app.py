import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from db.database import SessionStore
from processing.summarizer import Summarizer
from processing.transcriber import TranscriberFactory
from server.connection import create_socket_server
from server.routes import create_router


def _origins() -> list[str]:
    return [o.strip() for o in config.CORS_ORIGINS.split(",") if o.strip()]


def create_api(store: SessionStore, transcriber_factory: TranscriberFactory,
               summarizer: Summarizer, connections: dict) -> FastAPI:
    app = FastAPI(title="ScribeAI", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins(),
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    router = create_router(store, transcriber_factory, summarizer, connections)
    app.include_router(router, prefix="/api")
    return app


def create_app(store: SessionStore, transcriber_factory: TranscriberFactory,
               summarizer: Summarizer) -> socketio.ASGIApp:
    """HTTP API and the Socket.IO endpoint (``/socket.io``) on one ASGI app."""
    connections = {}
    api = create_api(store, transcriber_factory, summarizer, connections)
    origins = _origins()
    sio = create_socket_server(
        store, summarizer, transcriber_factory, connections,
        cors_origins="*" if origins == ["*"] else origins,
    )
    return socketio.ASGIApp(sio, other_asgi_app=api)
