"""Ports (Protocols) the engine depends on."""

from storeflow.application.interfaces.ports import (
    IBroadcastChannel,
    IEntityStore,
    IMailer,
    IWebhookClient,
    IWorkflowRepository,
)
from storeflow.shared.utils.clock import IClock

__all__ = [
    "IBroadcastChannel",
    "IClock",
    "IEntityStore",
    "IMailer",
    "IWebhookClient",
    "IWorkflowRepository",
]
