from __future__ import annotations

from fastapi import APIRouter, Request

from tableflow.api.request_context import normalize_order_code, request_context
from tableflow.application.dto.requests import IssueScopeRequest
from tableflow.application.dto.responses import IssueBatchResponse, RunnerQueueResponse
from tableflow.application.use_cases.runner_acknowledge import RunnerAcknowledge
from tableflow.application.use_cases.runner_queue import GetRunnerQueue
from tableflow.domain.issue.entities import resolve_scope
from tableflow.infrastructure.db.repositories.lifecycle_store import SqlAlchemyLifecycleStore
from tableflow.infrastructure.messaging.redis_publisher import RedisEventPublisher

router = APIRouter()


def _runner_queue_use_case() -> GetRunnerQueue:
    return GetRunnerQueue(store=SqlAlchemyLifecycleStore())


def _runner_acknowledge_use_case() -> RunnerAcknowledge:
    return RunnerAcknowledge(store=SqlAlchemyLifecycleStore(), publisher=RedisEventPublisher())


@router.get("/v1/runner/queue", response_model=RunnerQueueResponse)
def runner_queue() -> RunnerQueueResponse:
    return _runner_queue_use_case().execute()


@router.post("/v1/runner/orders/{code}/acknowledge", response_model=IssueBatchResponse)
def acknowledge(
    code: str,
    request: Request,
    request_dto: IssueScopeRequest | None = None,
) -> IssueBatchResponse:
    scope_dto = request_dto or IssueScopeRequest()
    return _runner_acknowledge_use_case().execute(
        order_code=normalize_order_code(code),
        scope=resolve_scope(scope_dto.ticket_id, scope_dto.stream),
        ctx=request_context(request),
    )
