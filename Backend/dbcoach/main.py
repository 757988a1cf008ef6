# dbcoach/main.py
"""
DBCoach Backend - database design generation service.
"""
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from starlette.middleware.cors import CORSMiddleware

from dbcoach.core.config import settings
from dbcoach.core.logging import log
from dbcoach.lib.websocket import ConnectionManager, StoreBroadcaster, transition_message
from dbcoach.llm.adapter import GeneratorAdapter
from dbcoach.orchestration.runner import GenerationRunner
from dbcoach.orchestration.store import SessionStore


def default_generator() -> Any:
    from dbcoach.llm.providers.gemini import GeminiGenerator
    return GeminiGenerator()


# ---------------------------------------------------------------------------
# LIFESPAN
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    log("SESSION", "🚀 DBCoach starting...")
    log("SESSION", f"🔑 GEMINI_API_KEY loaded: {bool(settings.llm.gemini_api_key)}, model: {settings.llm.default_model}")

    writer = None
    if settings.database.enabled:
        from dbcoach.db import connect_db
        from dbcoach.persistence import DesignWriter

        if await connect_db():
            writer = DesignWriter(app.state.store).attach()
    app.state.writer = writer

    yield

    log("SESSION", "🔌 Shutting down...")
    await app.state.runner.shutdown()
    if writer is not None:
        await writer.drain()
        writer.detach()
    if settings.database.enabled:
        from dbcoach.db import disconnect_db
        await disconnect_db()


# ---------------------------------------------------------------------------
# APP FACTORY
# ---------------------------------------------------------------------------

def create_app(generator: Optional[Any] = None, store: Optional[SessionStore] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        generator: Generator used for every session (defaults to Gemini)
        store: SessionStore to expose (a fresh one by default)
    """
    app = FastAPI(
        title="DBCoach",
        version="1.0.0",
        lifespan=lifespan,
    )

    store = store or SessionStore()
    manager = ConnectionManager()
    generator = generator or default_generator()

    app.state.store = store
    app.state.manager = manager
    app.state.runner = GenerationRunner(store, lambda: GeneratorAdapter(generator))
    app.state.broadcaster = StoreBroadcaster(store, manager).attach()
    app.state.writer = None

    cors_origins_str = os.getenv("CORS_ORIGINS", "*")
    cors_origins = cors_origins_str.split(",") if cors_origins_str != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # WEBSOCKET
    # -----------------------------------------------------------------------

    @app.websocket("/ws/generation")
    async def websocket_endpoint(websocket: WebSocket):
        await manager.connect(websocket)
        try:
            # Late joiners get the current state first
            snapshot = transition_message(store.get_session(), None)
            snapshot["type"] = "SESSION_SNAPSHOT"
            await manager.send_json(websocket, snapshot)
            while True:
                data = await websocket.receive_json()
                if data.get("type") == "CANCEL":
                    cancelled = app.state.runner.cancel()
                    log("WS", f"Cancel requested over WebSocket (accepted={cancelled})")
        except WebSocketDisconnect:
            await manager.disconnect(websocket)
        except Exception as e:
            log("WS", f"Error: {e}")
            await manager.disconnect(websocket)

    # -----------------------------------------------------------------------
    # API ROUTES
    # -----------------------------------------------------------------------

    from dbcoach.api import health, generations

    app.include_router(health.router)
    app.include_router(generations.router)

    return app


app = create_app()


# ---------------------------------------------------------------------------
# RUN
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "dbcoach.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
    )
