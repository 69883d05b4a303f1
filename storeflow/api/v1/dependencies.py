"""Presentation-layer dependencies.

The engine is built by the lifespan and read from ``app.state``; routes
never construct repositories or adapters themselves. The store scope comes
from the tenant header (``X-Store-ID`` by default), set by the POS gateway
after authentication.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from storeflow.application.dtos.workflow import ExecutionContext
from storeflow.application.services.workflow_engine import WorkflowEngine
from storeflow.core.config import get_settings
from storeflow.domain.exceptions import EngineNotRunningException, ValidationException

ORGANIZATION_HEADER = "X-Organization-ID"
USER_HEADER = "X-User-ID"


@dataclass(frozen=True)
class StoreScope:
    """Caller identity resolved from request headers."""

    store_id: str
    organization_id: str | None = None
    user_id: str | None = None


def get_engine(request: Request) -> WorkflowEngine:
    """Return the running engine. Raises EngineNotRunningException (503) otherwise."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise EngineNotRunningException()
    return engine


def get_store_scope(request: Request) -> StoreScope:
    """Resolve the store scope. Raises ValidationException (400) without a store header."""
    header = get_settings().store_header_name
    store_id = (request.headers.get(header) or "").strip()
    if not store_id:
        raise ValidationException(f"{header} header is required", field=header)
    return StoreScope(
        store_id=store_id,
        organization_id=request.headers.get(ORGANIZATION_HEADER) or None,
        user_id=request.headers.get(USER_HEADER) or None,
    )


def get_execution_context(
    engine: Annotated[WorkflowEngine, Depends(get_engine)],
    scope: Annotated[StoreScope, Depends(get_store_scope)],
) -> ExecutionContext:
    return engine.context_for(
        scope.store_id,
        organization_id=scope.organization_id,
        user_id=scope.user_id,
    )
