"""Health check API schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")


class ReadinessResponse(BaseModel):
    """Response for GET /health/ready."""

    status: str = Field(default="ok", description="Readiness status")
    engine_running: bool = Field(default=True, description="Workflow engine started")
    pending_events: int = Field(default=0, description="Events waiting in the dispatcher queue")
