"""Webhook client over a shared httpx.AsyncClient."""

import httpx

from storeflow.application.dtos.workflow import WebhookResponse
from storeflow.domain.exceptions import TransientError, WebhookFailedError
from storeflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class HttpxWebhookClient:
    """IWebhookClient with a fixed per-request timeout.

    Args:
        timeout_seconds: Applied to connect, read, write and pool waits.
        client: Injected client (tests pass one with httpx.MockTransport).
    """

    def __init__(
        self, timeout_seconds: float = 10.0, client: httpx.AsyncClient | None = None
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        self._timeout = httpx.Timeout(timeout_seconds)

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str | None,
    ) -> WebhookResponse:
        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                content=body.encode("utf-8") if body is not None else None,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise TransientError(
                f"Webhook request timed out: {url}", error_code="WEBHOOK_TIMEOUT"
            ) from e
        except httpx.HTTPError as e:
            raise TransientError(
                f"Webhook request failed: {e}", error_code="WEBHOOK_REQUEST_FAILED"
            ) from e

        logger.debug("Webhook %s %s -> %d", method, url, response.status_code)
        if not response.is_success:
            raise WebhookFailedError(response.status_code, url=url)
        return WebhookResponse(status_code=response.status_code, body=response.text)

    async def aclose(self) -> None:
        await self._client.aclose()
