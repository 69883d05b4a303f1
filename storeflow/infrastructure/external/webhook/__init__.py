"""HTTP client for the webhook action."""

from storeflow.infrastructure.external.webhook.httpx_client import HttpxWebhookClient

__all__ = ["HttpxWebhookClient"]
