# dbcoach/api/generations.py
"""
Generation routes - start, inspect, cancel and reset the current session.

The store is the only source of truth; these routes read from it and ask
the runner to act. Nothing here mutates session state directly.
"""
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from typing import Optional

from dbcoach.core.exceptions import MergeConfigurationError, SessionStateError
from dbcoach.orchestration.modes import get_mode


router = APIRouter(prefix="/api/generations", tags=["Generations"])


class StartGenerationRequest(BaseModel):
    prompt: str
    database_type: str = ""
    mode: Optional[str] = None


class StartGenerationResponse(BaseModel):
    session_id: str
    mode: str
    status: str = "running"


@router.post("", response_model=StartGenerationResponse, status_code=202)
async def start_generation(request: Request, data: StartGenerationRequest):
    """Start a new session in the background."""
    if not data.prompt.strip():
        raise HTTPException(status_code=400, detail="prompt must not be empty")

    runner = request.app.state.runner
    try:
        session_id = runner.start(data.prompt, database_type=data.database_type, mode=data.mode)
    except MergeConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=e.message)

    return StartGenerationResponse(session_id=session_id, mode=runner.executor.mode_name)


@router.get("/current")
async def get_current(request: Request):
    session = request.app.state.store.get_session()
    if session is None:
        raise HTTPException(status_code=404, detail="No active session")
    return session.to_dict()


@router.get("/current/progress")
async def get_progress(request: Request):
    return request.app.state.store.get_progress().to_dict()


@router.get("/current/slots/{slot}")
async def get_slot(request: Request, slot: str):
    """Artifact for one slot. available=False until a source phase completes."""
    store = request.app.state.store
    session = store.get_session()
    if session is None:
        raise HTTPException(status_code=404, detail="No active session")
    if get_mode(session.mode).get_slot(slot) is None:
        raise HTTPException(status_code=404, detail=f"Unknown slot '{slot}' for mode '{session.mode}'")

    artifact = store.get_slot_content(slot)
    return {
        "slot": slot,
        "available": artifact is not None,
        "artifact": artifact.to_dict() if artifact else None,
    }


@router.post("/current/cancel", status_code=202)
async def cancel_current(request: Request):
    if not request.app.state.runner.cancel():
        raise HTTPException(status_code=409, detail="No running generation to cancel")
    return {"cancelled": True}


@router.delete("/current")
async def reset_current(request: Request):
    """Cancel anything running and drop the current session."""
    await request.app.state.runner.reset()
    return {"reset": True}
