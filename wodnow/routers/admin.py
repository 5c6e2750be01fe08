"""
wodnow/routers/admin.py — Admin publishing endpoint
POST /api/admin/workouts, authenticated by the X-Admin-Key header.
Failed keys feed the progressive lockout; a correct key clears it.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from wodnow.core.abuse_protection import GateDecision, admin_gate
from wodnow.core.auth import is_valid_admin_key
from wodnow.core.errors import ValidationError
from wodnow.services.publisher import publish_workout

router = APIRouter()


@router.post("/admin/workouts")
async def publish(
    request: Request,
    gate: GateDecision = Depends(admin_gate),
    x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
) -> JSONResponse:
    """Validate and upsert a workout document; responds with {id, isPublished}."""
    state = request.app.state
    lockout = state.gate.lockout

    if not is_valid_admin_key(x_admin_key, state.settings.admin_api_key):
        raise lockout.register_failure(gate.client_key)
    lockout.clear(gate.client_key)

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")

    result = await publish_workout(
        payload,
        repository=state.repository,
        cache=state.cache,
        timeout_ms=state.settings.api_admin_request_timeout_ms,
        path=request.url.path,
    )
    return JSONResponse(content=result.model_dump(by_alias=True))
