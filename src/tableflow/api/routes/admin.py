from __future__ import annotations

import os

from fastapi import APIRouter, Path, Query, Request

from tableflow.api.request_context import normalize_order_code, request_context
from tableflow.application.dto.requests import AdminResolveRequest
from tableflow.application.dto.responses import (
    IssueBatchResponse,
    IssueListResponse,
    TableGridResponse,
    TableStatusResponse,
)
from tableflow.application.use_cases.list_issues import ListIssues
from tableflow.application.use_cases.list_tables import ListTableStatuses
from tableflow.application.use_cases.resolve_issues import ResolveIssues
from tableflow.application.use_cases.table_summary import GetTableStatus
from tableflow.domain.issue.entities import ResolvedBy, resolve_scope
from tableflow.domain.views.table_status import DEFAULT_LOOKBACK_MINUTES
from tableflow.infrastructure.db.repositories.lifecycle_store import SqlAlchemyLifecycleStore
from tableflow.infrastructure.messaging.redis_publisher import RedisEventPublisher

router = APIRouter()

DEFAULT_MAX_TABLES = 10


def _default_lookback_minutes() -> int:
    return int(os.getenv("TABLE_LOOKBACK_MINUTES", str(DEFAULT_LOOKBACK_MINUTES)))


def _max_tables() -> int:
    return int(os.getenv("ADMIN_MAX_TABLES", str(DEFAULT_MAX_TABLES)))


def _list_tables_use_case() -> ListTableStatuses:
    return ListTableStatuses(store=SqlAlchemyLifecycleStore(), max_tables=_max_tables())


def _table_status_use_case() -> GetTableStatus:
    return GetTableStatus(store=SqlAlchemyLifecycleStore())


def _list_issues_use_case() -> ListIssues:
    return ListIssues(store=SqlAlchemyLifecycleStore())


def _resolve_issues_use_case() -> ResolveIssues:
    return ResolveIssues(store=SqlAlchemyLifecycleStore(), publisher=RedisEventPublisher())


@router.get("/v1/admin/tables", response_model=TableGridResponse)
def list_tables(
    lookback_mins: int | None = Query(default=None, alias="lookbackMins"),
) -> TableGridResponse:
    return _list_tables_use_case().execute(
        lookback_minutes=lookback_mins if lookback_mins is not None else _default_lookback_minutes()
    )


@router.get("/v1/admin/tables/{table_number}", response_model=TableStatusResponse)
def table_status(
    table_number: int = Path(ge=1),
    lookback_mins: int | None = Query(default=None, alias="lookbackMins"),
) -> TableStatusResponse:
    return _table_status_use_case().execute(
        table_number=table_number,
        lookback_minutes=lookback_mins if lookback_mins is not None else _default_lookback_minutes(),
    )


@router.get("/v1/admin/issues", response_model=IssueListResponse)
def list_issues(
    status: str = Query(default="UNRESOLVED"),
    limit: int = Query(default=100),
) -> IssueListResponse:
    return _list_issues_use_case().execute(status=status, limit=limit)


@router.post("/v1/admin/orders/{code}/resolve", response_model=IssueBatchResponse)
def resolve_issues(
    code: str,
    request: Request,
    request_dto: AdminResolveRequest | None = None,
) -> IssueBatchResponse:
    resolve_dto = request_dto or AdminResolveRequest()
    return _resolve_issues_use_case().execute(
        order_code=normalize_order_code(code),
        scope=resolve_scope(resolve_dto.ticket_id, resolve_dto.stream),
        resolved_by=ResolvedBy.ADMIN,
        ctx=request_context(request),
        note=resolve_dto.note,
    )
