from __future__ import annotations

from tableflow.application.ports.publisher import EventPublisher
from tableflow.infrastructure.messaging.redis_client import get_redis_client, redis_configured

CHANNEL_PREFIX = "events:"


def channel_for_topic(topic: str) -> str:
    return f"{CHANNEL_PREFIX}{topic}"


def topic_for_channel(channel: str) -> str | None:
    if not channel.startswith(CHANNEL_PREFIX):
        return None
    return channel[len(CHANNEL_PREFIX):] or None


class RedisEventPublisher(EventPublisher):
    """Publish lifecycle events to ``events:<topic>`` Redis channels; a no-op without ``REDIS_URL``."""

    def __init__(self, timeout_seconds: float = 1.0) -> None:
        self._timeout_seconds = timeout_seconds

    def publish(self, topic: str, message: str) -> None:
        if not redis_configured():
            return
        get_redis_client(timeout_seconds=self._timeout_seconds).publish(channel_for_topic(topic), message)
