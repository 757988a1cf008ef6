# dbcoach/api/health.py
"""
Health check endpoints.
"""
from datetime import datetime, timezone
from fastapi import APIRouter

from dbcoach.db import get_connection_error, is_connected

router = APIRouter(tags=["Health"])


@router.get("/healthz")
async def healthz():
    """Simple health check."""
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/api/health")
async def api_health():
    """API health check."""
    return {
        "status": "healthy",
        "database": "connected" if is_connected() else "disconnected",
        "database_error": get_connection_error(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
