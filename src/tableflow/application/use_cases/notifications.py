from __future__ import annotations

import logging
from collections.abc import Iterable

from tableflow.application.ports.publisher import EventPublisher
from tableflow.domain.common.stream import Stream
from tableflow.domain.order.entities import Order

logger = logging.getLogger(__name__)


def order_topics(order: Order, streams: Iterable[Stream] = ()) -> list[str]:
    topics = ["admin", "runner", f"order:{order.code}"]
    topics.extend(f"station:{stream.value}" for stream in sorted(set(streams), key=lambda s: s.value))
    return topics


def publish_to_topics(publisher: EventPublisher, topics: list[str], message: str) -> None:
    # Delivery is best effort; clients fall back to polling the read endpoints.
    for topic in topics:
        try:
            publisher.publish(topic=topic, message=message)
        except Exception:
            logger.warning("event_publish_failed", extra={"topic": topic}, exc_info=True)
