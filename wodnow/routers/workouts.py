"""
wodnow/routers/workouts.py — Public workout endpoints
GET /api/workouts, /api/workouts/random, /api/workouts/{workout_id}.
All are behind the public abuse-protection gate and the public timeout.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from wodnow.core.abuse_protection import GateDecision, public_gate
from wodnow.core.errors import InvalidStoredPayload, NotFoundError
from wodnow.core.timeout import with_timeout
from wodnow.models import WorkoutCountResponse
from wodnow.services.filters import FilterKey, normalize_filters
from wodnow.utils.validators import to_workout_response

router = APIRouter()


def _cache_control(filters: FilterKey, request: Request) -> str:
    settings = request.app.state.settings
    if not filters.cache_eligible:
        return "private, no-store"
    return (
        f"public, s-maxage={settings.random_wod_edge_cache_ttl_seconds}, "
        f"stale-while-revalidate={settings.random_wod_edge_cache_swr_seconds}"
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/workouts — total workout count
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/workouts", response_model=WorkoutCountResponse)
async def count_workouts(
    request: Request,
    _gate: GateDecision = Depends(public_gate),
) -> WorkoutCountResponse:
    state = request.app.state
    count = await with_timeout(
        state.repository.count(),
        state.settings.api_public_request_timeout_ms,
        scope="public",
        path=request.url.path,
    )
    return WorkoutCountResponse(count=count)


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/workouts/random — uniform random pick under filters
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/workouts/random")
async def random_workout(
    request: Request,
    _gate: GateDecision = Depends(public_gate),
) -> JSONResponse:
    """
    Query: timeCapMax (positive int), equipment and exclude (repeatable,
    comma-separated). Requests without exclude are served from the
    in-process cache when possible.
    """
    state = request.app.state
    params = request.query_params
    # first occurrence wins for a repeated timeCapMax
    time_caps = params.getlist("timeCapMax")
    filters = normalize_filters(
        time_caps[0] if time_caps else None,
        params.getlist("equipment"),
        params.getlist("exclude"),
    )

    headers = {"Cache-Control": _cache_control(filters, request)}
    if filters.cache_eligible:
        cached = state.cache.get(filters.cache_key)
        if cached is not None:
            return JSONResponse(content=cached, headers=headers)

    record = await with_timeout(
        state.repository.find_random(filters),
        state.settings.api_public_request_timeout_ms,
        scope="public",
        path=request.url.path,
    )
    if record is None:
        raise NotFoundError("No workout matched the provided filters")

    workout = to_workout_response(record)
    if workout is None:
        raise InvalidStoredPayload()

    body = workout.model_dump(by_alias=True)
    if filters.cache_eligible:
        state.cache.set(filters.cache_key, body)
    return JSONResponse(content=body, headers=headers)


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/workouts/{workout_id} — published workouts only
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/workouts/{workout_id}")
async def get_workout(
    workout_id: str,
    request: Request,
    _gate: GateDecision = Depends(public_gate),
) -> JSONResponse:
    state = request.app.state
    record = await with_timeout(
        state.repository.find_published(workout_id),
        state.settings.api_public_request_timeout_ms,
        scope="public",
        path=request.url.path,
    )
    if record is None:
        raise NotFoundError("Workout not found")

    workout = to_workout_response(record)
    if workout is None:
        raise InvalidStoredPayload()
    return JSONResponse(content=workout.model_dump(by_alias=True))
