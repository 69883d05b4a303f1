"""Redis pub/sub broadcast for notification actions."""

from storeflow.infrastructure.messaging.redis_broadcast import RedisBroadcastChannel

__all__ = ["RedisBroadcastChannel"]
