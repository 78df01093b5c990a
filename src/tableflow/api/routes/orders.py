from __future__ import annotations

from fastapi import APIRouter, Request, status

from tableflow.api.request_context import normalize_order_code, request_context
from tableflow.application.dto.requests import CreateIssueRequest, IssueScopeRequest, PlaceOrderRequest
from tableflow.application.dto.responses import (
    IssueBatchResponse,
    IssueResponse,
    OrderDetailResponse,
    OrderStateResponse,
)
from tableflow.application.use_cases.confirm_delivery import ConfirmDelivery
from tableflow.application.use_cases.create_issue import CreateIssue
from tableflow.application.use_cases.get_order import GetOrderDetail
from tableflow.application.use_cases.place_order import PlaceOrder
from tableflow.application.use_cases.resolve_issues import ResolveIssues
from tableflow.domain.issue.entities import ResolvedBy, resolve_scope
from tableflow.infrastructure.db.repositories.lifecycle_store import SqlAlchemyLifecycleStore
from tableflow.infrastructure.messaging.redis_publisher import RedisEventPublisher

router = APIRouter()


def _place_order_use_case() -> PlaceOrder:
    return PlaceOrder(store=SqlAlchemyLifecycleStore(), publisher=RedisEventPublisher())


def _get_order_use_case() -> GetOrderDetail:
    return GetOrderDetail(store=SqlAlchemyLifecycleStore())


def _create_issue_use_case() -> CreateIssue:
    return CreateIssue(store=SqlAlchemyLifecycleStore(), publisher=RedisEventPublisher())


def _confirm_delivery_use_case() -> ConfirmDelivery:
    return ConfirmDelivery(store=SqlAlchemyLifecycleStore(), publisher=RedisEventPublisher())


def _resolve_issues_use_case() -> ResolveIssues:
    return ResolveIssues(store=SqlAlchemyLifecycleStore(), publisher=RedisEventPublisher())


@router.post(
    "/v1/orders",
    response_model=OrderDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
def place_order(request_dto: PlaceOrderRequest, request: Request) -> OrderDetailResponse:
    return _place_order_use_case().execute(request_dto=request_dto, ctx=request_context(request))


@router.get("/v1/orders/{code}", response_model=OrderDetailResponse)
def get_order(code: str) -> OrderDetailResponse:
    return _get_order_use_case().execute(order_code=normalize_order_code(code))


@router.post(
    "/v1/orders/{code}/issues",
    response_model=IssueResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_issue(code: str, request_dto: CreateIssueRequest, request: Request) -> IssueResponse:
    return _create_issue_use_case().execute(
        order_code=normalize_order_code(code),
        scope=resolve_scope(request_dto.ticket_id, request_dto.stream),
        issue_type=request_dto.issue_type,
        description=request_dto.description,
        ctx=request_context(request),
    )


@router.post("/v1/orders/{code}/confirm-delivery", response_model=OrderStateResponse)
def confirm_delivery(code: str, request: Request) -> OrderStateResponse:
    return _confirm_delivery_use_case().execute(
        order_code=normalize_order_code(code),
        ctx=request_context(request),
    )


@router.post("/v1/orders/{code}/confirm-fix", response_model=IssueBatchResponse)
def confirm_fix(
    code: str,
    request: Request,
    request_dto: IssueScopeRequest | None = None,
) -> IssueBatchResponse:
    scope_dto = request_dto or IssueScopeRequest()
    return _resolve_issues_use_case().execute(
        order_code=normalize_order_code(code),
        scope=resolve_scope(scope_dto.ticket_id, scope_dto.stream),
        resolved_by=ResolvedBy.CUSTOMER_CONFIRMATION,
        ctx=request_context(request),
    )
