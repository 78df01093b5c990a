from __future__ import annotations

from tableflow.application.dto.responses import (
    IssueBatchResponse,
    IssueResponse,
    LineItemResponse,
    OrderDetailResponse,
    OrderStateResponse,
    OrderSummaryResponse,
    OrderTicketResponse,
    TicketResponse,
)
from tableflow.domain.issue.entities import (
    Issue,
    OrderWideScope,
    StreamScope,
    awaiting_fix_confirmation,
)
from tableflow.domain.order.closing import closing_blockers, needs_customer_confirmation
from tableflow.domain.order.entities import Order
from tableflow.domain.ticket.entities import Ticket
from tableflow.domain.views.table_status import order_card_color


def _scope_name(issue: Issue) -> str:
    if isinstance(issue.scope, OrderWideScope):
        return "order"
    if isinstance(issue.scope, StreamScope):
        return "stream"
    return "ticket"


def to_ticket_response(ticket: Ticket, order: Order) -> TicketResponse:
    return TicketResponse(
        ticketId=str(ticket.ticket_id),
        orderCode=str(order.code),
        tableNumber=order.table_number,
        stream=ticket.stream.value,
        status=ticket.status.value,
        createdAt=ticket.created_at,
        readyAt=ticket.ready_at,
        deliveredAt=ticket.delivered_at,
        items=[
            LineItemResponse(
                lineId=str(item.line_id),
                name=item.name,
                quantity=item.quantity,
                unitPriceCents=item.unit_price_cents,
                notes=item.notes,
            )
            for item in ticket.items
        ],
    )


def to_issue_response(issue: Issue, order: Order) -> IssueResponse:
    return IssueResponse(
        issueId=str(issue.issue_id),
        orderCode=str(order.code),
        tableNumber=order.table_number,
        scope=_scope_name(issue),
        ticketId=str(issue.ticket_id) if issue.ticket_id else None,
        stream=issue.stream.value if issue.stream else None,
        type=issue.issue_type,
        description=issue.description,
        status=issue.status.value,
        createdAt=issue.created_at,
        resolvedAt=issue.resolved_at,
        resolvedBy=issue.resolved_by.value if issue.resolved_by else None,
        resolutionNote=issue.resolution_note,
    )


def to_order_summary_response(order: Order) -> OrderSummaryResponse:
    return OrderSummaryResponse(
        orderCode=str(order.code),
        tableNumber=order.table_number,
        createdAt=order.created_at,
        closedAt=order.closed_at,
        customerConfirmedAt=order.customer_confirmed_at,
        resolutionRequired=order.resolution_required,
        color=order_card_color(order).value,
    )


def to_order_detail_response(
    order: Order,
    tickets: list[Ticket],
    issues: list[Issue],
) -> OrderDetailResponse:
    open_issues = [issue for issue in issues if not issue.is_resolved]
    ticket_rows = []
    for ticket in tickets:
        base = to_ticket_response(ticket, order)
        ticket_rows.append(
            OrderTicketResponse(
                **base.model_dump(),
                hasIssue=any(issue.ticket_id == ticket.ticket_id for issue in open_issues),
                awaitingFixConfirmation=awaiting_fix_confirmation(
                    open_issues, ticket.ticket_id, ticket.stream
                ),
            )
        )

    summary = to_order_summary_response(order)
    return OrderDetailResponse(
        **summary.model_dump(),
        needsCustomerConfirmation=needs_customer_confirmation(order, tickets, issues),
        tickets=ticket_rows,
        issues=[to_issue_response(issue, order) for issue in issues],
    )


def to_order_state_response(
    order: Order,
    tickets: list[Ticket],
    issues: list[Issue],
) -> OrderStateResponse:
    return OrderStateResponse(
        orderCode=str(order.code),
        tableNumber=order.table_number,
        customerConfirmedAt=order.customer_confirmed_at,
        closedAt=order.closed_at,
        resolutionRequired=order.resolution_required,
        closeBlockers=[] if order.is_closed else closing_blockers(order, tickets, issues),
    )


def to_issue_batch_response(
    count: int,
    order: Order,
    tickets: list[Ticket],
    issues: list[Issue],
) -> IssueBatchResponse:
    state = to_order_state_response(order, tickets, issues)
    return IssueBatchResponse(**state.model_dump(), count=count)
