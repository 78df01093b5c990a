from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import uuid4

from tableflow.domain.order.events import (
    IssuesChanged,
    OrderPlaced,
    OrderStateChanged,
    TicketStatusChanged,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _serialize_event(
    *,
    event_type: str,
    occurred_at: datetime,
    payload: dict[str, Any],
    trace_id: str | None,
    request_id: str | None,
    actor: str | None,
) -> str:
    envelope = {
        "event_id": str(uuid4()),
        "event_type": event_type,
        "occurred_at": occurred_at.isoformat(),
        "request_id": request_id,
        "trace_id": trace_id,
        "actor": actor,
        "payload": payload,
    }
    return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)


def serialize_order_placed_event(
    event: OrderPlaced,
    *,
    trace_id: str | None,
    request_id: str | None,
    actor: str | None,
) -> str:
    return _serialize_event(
        event_type="order.placed",
        occurred_at=event.occurred_at,
        trace_id=trace_id,
        request_id=request_id,
        actor=actor,
        payload={
            "orderCode": str(event.code),
            "tableNumber": event.table_number,
            "streams": [stream.value for stream in event.streams],
        },
    )


def serialize_ticket_event(
    event: TicketStatusChanged,
    *,
    trace_id: str | None,
    request_id: str | None,
    actor: str | None,
) -> str:
    return _serialize_event(
        event_type="ticket.status_changed",
        occurred_at=event.occurred_at,
        trace_id=trace_id,
        request_id=request_id,
        actor=actor,
        payload={
            "orderCode": str(event.code),
            "tableNumber": event.table_number,
            "ticketId": str(event.ticket_id),
            "stream": event.stream.value,
            "from": event.from_status.value,
            "to": event.to_status.value,
        },
    )


def serialize_issues_event(
    event: IssuesChanged,
    *,
    trace_id: str | None,
    request_id: str | None,
    actor: str | None,
) -> str:
    return _serialize_event(
        event_type=event.event_type,
        occurred_at=event.occurred_at,
        trace_id=trace_id,
        request_id=request_id,
        actor=actor,
        payload={
            "orderCode": str(event.code),
            "tableNumber": event.table_number,
            "issueIds": [str(issue_id) for issue_id in event.issue_ids],
            "status": event.status.value,
            "streams": [stream.value for stream in event.streams],
            "resolutionRequired": event.resolution_required,
        },
    )


def serialize_order_state_event(
    event: OrderStateChanged,
    *,
    trace_id: str | None,
    request_id: str | None,
    actor: str | None,
) -> str:
    return _serialize_event(
        event_type=event.event_type,
        occurred_at=event.occurred_at,
        trace_id=trace_id,
        request_id=request_id,
        actor=actor,
        payload={
            "orderCode": str(event.code),
            "tableNumber": event.table_number,
            "customerConfirmedAt": _iso(event.customer_confirmed_at),
            "closedAt": _iso(event.closed_at),
        },
    )
