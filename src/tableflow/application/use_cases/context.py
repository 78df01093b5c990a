from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    trace_id: str | None
    request_id: str | None
    actor: str | None = None
