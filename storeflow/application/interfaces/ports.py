"""Service and repository interfaces (ports) for the workflow engine.

Protocols define the contracts the interpreter, dispatcher and scheduler
depend on (DIP). Infrastructure provides the SQL, SMTP, HTTP and Redis
implementations; tests pass fakes or AsyncMock.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from storeflow.application.dtos.workflow import MailMessage, WebhookResponse
    from storeflow.domain.entities.workflow import LastError, Workflow
    from storeflow.domain.enums import EntityKind, TriggerType


# Entity store: the only I/O into business data (update/create actions)
class IEntityStore(Protocol):
    """CRUD contract over sale, product, customer, employee, store and user records."""

    async def find(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        """Return the record's fields. Raises ResourceNotFoundException if absent."""

    async def update(
        self, kind: EntityKind, entity_id: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        """Shallow-merge patch into the record and return it. Raises ResourceNotFoundException."""

    async def create(self, kind: EntityKind, data: dict[str, Any]) -> dict[str, Any]:
        """Persist a new record (data must include storeId); return it with its id."""


# Mailer (email action)
class IMailer(Protocol):
    """Submits one message to the mail transport; raises on transport failure."""

    async def send(self, message: MailMessage) -> None:
        """Send message. Raises TransientError on transport errors."""


# Webhook client (webhook action)
class IWebhookClient(Protocol):
    """Issues an HTTP request with a raw body and a fixed timeout."""

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None,
    ) -> WebhookResponse:
        """Return a 2xx response.

        Raises:
            WebhookFailedError: the endpoint answered with a non-2xx status.
            TransientError: timeout or transport failure.
        """


# Broadcast channel (notification action)
class IBroadcastChannel(Protocol):
    """Pub/sub emit to a room (``user:{userId}``); fire-and-forget."""

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        """Emit event to room. Must not raise on delivery failure."""


# Workflow repository
class IWorkflowRepository(Protocol):
    """Set queries over workflow definitions plus the stats write path."""

    async def active_for(
        self, store_id: str, trigger_type: TriggerType | str
    ) -> list[Workflow]:
        """Executable workflows for store and trigger, newest-created first."""

    async def due_scheduled(self, now: datetime) -> list[Workflow]:
        """Executable schedule workflows with nextRun <= now."""

    async def record_execution(
        self,
        workflow_id: str,
        success: bool,
        error: LastError | None = None,
        executed_at: datetime | None = None,
    ) -> None:
        """Atomically bump counters; on failure with error, overwrite lastError."""

    async def save(self, workflow: Workflow) -> Workflow:
        """Insert or update the definition (recomputes nextRun for active schedules)."""

    async def get(self, workflow_id: str) -> Workflow | None:
        """Return a workflow by id (deleted ones included), or None."""

    async def set_next_run(self, workflow_id: str, next_run: datetime | None) -> None:
        """Persist the scheduler's next fire time."""
