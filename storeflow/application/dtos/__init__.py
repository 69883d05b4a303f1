"""Application DTOs (no ORM dependency)."""

from storeflow.application.dtos.workflow import (
    ActionOutcome,
    ActionTrace,
    CancellationToken,
    ExecutionContext,
    ExecutionResult,
    MailMessage,
    SequenceResult,
    WebhookResponse,
)

__all__ = [
    "ActionOutcome",
    "ActionTrace",
    "CancellationToken",
    "ExecutionContext",
    "ExecutionResult",
    "MailMessage",
    "SequenceResult",
    "WebhookResponse",
]
