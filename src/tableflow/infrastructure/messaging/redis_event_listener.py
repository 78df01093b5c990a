from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from redis import asyncio as redis_asyncio

from tableflow.infrastructure.messaging.redis_publisher import CHANNEL_PREFIX, topic_for_channel

logger = logging.getLogger(__name__)

_PATTERN = f"{CHANNEL_PREFIX}*"


def _decode_value(value: bytes | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


async def dispatch_message(ws_manager: Any, message: dict[str, Any]) -> bool:
    """Forward one pub/sub message to the WebSocket clients of its topic."""
    channel = _decode_value(message.get("channel"))
    payload = _decode_value(message.get("data"))
    if not channel or not payload:
        return False

    topic = topic_for_channel(channel)
    if topic is None:
        logger.warning("redis_fanout_invalid_channel", extra={"channel": channel})
        return False

    await ws_manager.broadcast(topic=topic, message_json_str=payload)
    return True


async def start_redis_fanout(app_state: Any) -> None:
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        logger.warning("redis_fanout_not_started", extra={"reason": "REDIS_URL missing"})
        return

    backoff_seconds = 1.0
    while True:
        client: redis_asyncio.Redis | None = None
        pubsub: redis_asyncio.client.PubSub | None = None
        try:
            client = redis_asyncio.from_url(redis_url)
            pubsub = client.pubsub()
            await pubsub.psubscribe(_PATTERN)
            logger.info("redis_fanout_subscribed", extra={"pattern": _PATTERN})
            backoff_seconds = 1.0

            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    await asyncio.sleep(0.05)
                    continue
                await dispatch_message(app_state.ws_manager, message)
        except asyncio.CancelledError:
            logger.info("redis_fanout_cancelled")
            raise
        except Exception:
            logger.exception(
                "redis_fanout_error",
                extra={"backoff_seconds": backoff_seconds},
            )
            await asyncio.sleep(backoff_seconds)
            backoff_seconds = min(backoff_seconds * 2, 5.0)
        finally:
            if pubsub is not None:
                await pubsub.aclose()
            if client is not None:
                await client.aclose()
