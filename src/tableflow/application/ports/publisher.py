from __future__ import annotations

from typing import Protocol


class EventPublisher(Protocol):
    """Fan-out hook; ``topic`` is e.g. ``admin``, ``runner``, ``station:food`` or ``order:<code>``."""

    def publish(self, topic: str, message: str) -> None: ...
