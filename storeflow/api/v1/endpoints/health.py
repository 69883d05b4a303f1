"""Health check endpoints, used for liveness and readiness probes."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from storeflow.schemas.health import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Workflow engine not running", "model": ReadinessResponse}},
)
def readiness_check(request: Request) -> ReadinessResponse | JSONResponse:
    """Return 200 once the workflow engine is started; 503 otherwise."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None or not engine.started:
        return JSONResponse(
            status_code=503,
            content=ReadinessResponse(status="not_ready", engine_running=False).model_dump(),
        )
    return ReadinessResponse(pending_events=engine.dispatcher.pending)
