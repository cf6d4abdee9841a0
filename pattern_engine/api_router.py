"""
Pattern Engine API Router

FastAPI routes for the pattern engine request boundary:
- POST /v1/patterns/engine: discriminated {action, data?, pattern_type?, context?}
- GET  /v1/patterns: analyze shortcut
- POST /v1/patterns/{name}/activate | /deactivate: admin soft-disable
- GET  /v1/patterns/feedback/{action_id}: review history of one action
"""

import logging
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import EngineError
from .learning_engine import PatternLearningEngine, get_pattern_engine

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
logger = logging.getLogger("api_router")

# -----------------------------------------------------------------------------
# Router Setup
# -----------------------------------------------------------------------------
router = APIRouter(prefix="/v1/patterns", tags=["Pattern Engine"])

ERROR_STATUS_CODES = {
    "ENGINE_DISABLED": 403,
    "NOT_FOUND": 404,
    "UNKNOWN_ACTION": 400,
    "INVALID_REQUEST": 400,
    "PERSISTENCE_FAILED": 500,
}


# -----------------------------------------------------------------------------
# Request Models
# -----------------------------------------------------------------------------
class EngineRequest(BaseModel):
    """Discriminated engine payload."""
    action: str = Field(..., description="train | analyze | predict | feedback")
    data: Optional[Dict[str, Any]] = Field(None, description="Action-specific data")
    pattern_type: Optional[str] = Field(None, description="Category filter for analyze")
    context: Optional[Dict[str, Any]] = Field(None, description="Live problem context for predict")


def _respond(result: Dict[str, Any]) -> JSONResponse:
    status_code = 200 if result.get("success") else ERROR_STATUS_CODES.get(result.get("code"), 400)
    return JSONResponse(status_code=status_code, content=result)


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
@router.post("/engine")
async def run_engine_action(
    request: EngineRequest,
    engine: PatternLearningEngine = Depends(get_pattern_engine),
) -> JSONResponse:
    """Run one engine operation."""
    payload = request.model_dump(exclude_none=True)
    return _respond(engine.handle_request(payload))


@router.get("")
async def list_patterns(
    pattern_type: Optional[str] = Query(None, description="Filter by category"),
    include_inactive: bool = Query(False),
    engine: PatternLearningEngine = Depends(get_pattern_engine),
) -> JSONResponse:
    """List stored patterns with summary counts."""
    payload: Dict[str, Any] = {"action": "analyze", "data": {"include_inactive": include_inactive}}
    if pattern_type:
        payload["pattern_type"] = pattern_type
    return _respond(engine.handle_request(payload))


@router.get("/feedback/{action_id}")
async def get_feedback_history(
    action_id: str,
    engine: PatternLearningEngine = Depends(get_pattern_engine),
) -> JSONResponse:
    """Review events recorded for one action, oldest first."""
    try:
        events = engine.feedback_history(action_id)
    except EngineError as e:
        return _respond(e.to_dict())
    return _respond({"success": True, "action_id": action_id, "events": events})


async def _set_active(engine: PatternLearningEngine, name: str, active: bool) -> JSONResponse:
    try:
        pattern = engine.set_pattern_active(name, active)
    except EngineError as e:
        logger.info(f"Pattern {name} {'activation' if active else 'deactivation'} failed: {e.code}")
        return _respond(e.to_dict())
    return _respond({"success": True, "pattern": pattern.to_dict()})


@router.post("/{name}/deactivate")
async def deactivate_pattern(
    name: str,
    engine: PatternLearningEngine = Depends(get_pattern_engine),
) -> JSONResponse:
    """Soft-disable a pattern so predict no longer serves it."""
    return await _set_active(engine, name, False)


@router.post("/{name}/activate")
async def activate_pattern(
    name: str,
    engine: PatternLearningEngine = Depends(get_pattern_engine),
) -> JSONResponse:
    return await _set_active(engine, name, True)
