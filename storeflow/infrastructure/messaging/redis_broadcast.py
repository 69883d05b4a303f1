"""Redis Pub/Sub broadcast channel for workflow notifications.

Publishes ``{room, event, payload}`` envelopes on ``notifications:{room}``.
The socket gateway subscribes to the pattern and forwards each envelope to
the room's connected clients. Delivery is fire-and-forget: a missing or
failing Redis is logged, never raised to the workflow.
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis

from storeflow.core.config import Settings
from storeflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class RedisBroadcastChannel:
    """IBroadcastChannel backed by Redis PUBLISH."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
        channel_prefix: str = "notifications",
    ) -> None:
        """Initialize. Pass redis_client for DI/testing; settings to connect lazily."""
        self.redis = redis_client
        self.settings = settings
        self.channel_prefix = channel_prefix
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish Redis connection. Call on app startup."""
        if self._connected or self.settings is None:
            return
        try:
            self.redis = redis.Redis(
                host=self.settings.redis_host,
                port=self.settings.redis_port,
                db=self.settings.redis_db,
                password=(
                    self.settings.redis_password.get_secret_value()
                    if self.settings.redis_password
                    else None
                ),
                decode_responses=True,
                socket_connect_timeout=5,
            )
            await self.redis.ping()
            self._connected = True
            logger.info("Redis broadcast channel connected")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis broadcast connection failed: %s", e)
            self._connected = False
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection. Call on app shutdown."""
        if self.redis is not None:
            await self.redis.aclose()
            self._connected = False
            logger.info("Redis broadcast channel disconnected")

    def is_available(self) -> bool:
        return self._connected and self.redis is not None

    def channel_for(self, room: str) -> str:
        return f"{self.channel_prefix}:{room}"

    async def publish(self, room: str, event: str, payload: dict[str, Any]) -> bool:
        """Publish one envelope.

        Returns:
            True if published, False if Redis is unavailable or publish failed.
        """
        if not self.is_available() or self.redis is None:
            logger.debug("Redis not available, skipping %s to %s", event, room)
            return False
        try:
            message = json.dumps({"room": room, "event": event, "payload": payload}, default=str)
            await self.redis.publish(self.channel_for(room), message)
            logger.debug("Published %s to %s", event, room)
        except Exception:
            logger.exception("Failed to publish %s to %s", event, room)
            return False
        else:
            return True

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        await self.publish(room, event, payload)
