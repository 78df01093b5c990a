from __future__ import annotations

from starlette.requests import HTTPConnection

from tableflow.api.middleware.request_id import get_request_id
from tableflow.application.use_cases.context import RequestContext
from tableflow.domain.common.ids import OrderCode
from tableflow.infrastructure.observability.otel import current_trace_id

ACTOR_ROLE_HEADER = "X-Actor-Role"


def request_context(connection: HTTPConnection) -> RequestContext:
    actor = connection.headers.get(ACTOR_ROLE_HEADER)
    return RequestContext(
        trace_id=current_trace_id(),
        request_id=get_request_id(),
        actor=actor.strip().lower() if actor else None,
    )


def normalize_order_code(code: str) -> OrderCode:
    return OrderCode(code.strip().upper())
