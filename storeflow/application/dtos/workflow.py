"""DTOs for workflow execution (no dependency on ORM or HTTP)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from storeflow.domain.enums import ActionStatus, ErrorKind

if TYPE_CHECKING:
    from storeflow.application.interfaces.ports import IBroadcastChannel
    from storeflow.domain.exceptions import WorkflowActionError


class CancellationToken:
    """Cooperative cancellation flag shared by one or more executions.

    ``cancel()`` is idempotent. Awaiting ``wait()`` returns once cancelled,
    which lets the interpreter race I/O and delays against the token.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(frozen=True)
class ExecutionContext:
    """Who and where an execution runs for; the ``context`` template binding."""

    store_id: str
    organization_id: str | None = None
    user_id: str | None = None
    broadcast_channel: IBroadcastChannel | None = None
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    extra: dict[str, Any] = field(default_factory=dict)

    def bindings(self) -> dict[str, Any]:
        """Return the tree that ``{{ context.PATH }}`` placeholders resolve against."""
        values: dict[str, Any] = dict(self.extra)
        values.update(
            storeId=self.store_id,
            organizationId=self.organization_id,
            userId=self.user_id,
        )
        return values

    def with_cancellation(self, token: CancellationToken) -> ExecutionContext:
        return replace(self, cancellation=token)


@dataclass(frozen=True)
class MailMessage:
    """One outgoing email (``from`` is filled by the mailer when sender is None)."""

    to: tuple[str, ...]
    subject: str
    html: str
    sender: str | None = None


@dataclass(frozen=True)
class WebhookResponse:
    status_code: int
    body: str = ""


@dataclass(frozen=True)
class ActionOutcome:
    """Result of interpreting one action. Failures are values, never raised."""

    ok: bool
    status: ActionStatus = ActionStatus.SUCCESS
    result: dict[str, Any] | None = None
    error: WorkflowActionError | None = None
    # Trace entries of actions run inside this one (condition branches).
    nested: tuple[ActionTrace, ...] = ()

    @classmethod
    def success(
        cls, result: dict[str, Any] | None = None, status: ActionStatus = ActionStatus.SUCCESS
    ) -> ActionOutcome:
        return cls(ok=True, status=status, result=result)

    @classmethod
    def failure(cls, error: WorkflowActionError) -> ActionOutcome:
        return cls(ok=False, status=ActionStatus.FAILED, error=error)


@dataclass(frozen=True)
class ActionTrace:
    """Per-action trace entry (visited actions only, in visit order)."""

    action_type: str
    status: ActionStatus
    depth: int = 0
    error: str | None = None
    error_kind: ErrorKind | None = None
    result: dict[str, Any] | None = None


@dataclass
class SequenceResult:
    """Outcome of running an ordered action list with the continue/abort rule."""

    trace: list[ActionTrace] = field(default_factory=list)
    error: WorkflowActionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one workflow execution, as returned to manual/test callers."""

    workflow_id: str
    success: bool
    error: str | None = None
    error_kind: ErrorKind | None = None
    trace: tuple[ActionTrace, ...] = ()
