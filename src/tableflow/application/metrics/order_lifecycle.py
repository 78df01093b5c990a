from __future__ import annotations

from datetime import datetime

from prometheus_client import Counter, Gauge, Histogram

from tableflow.domain.ticket.entities import Ticket
from tableflow.domain.ticket.state import TicketStatus

ORDERS_PLACED_TOTAL = Counter(
    "tableflow_orders_placed_total",
    "Total number of orders placed.",
)

ORDERS_CLOSED_TOTAL = Counter(
    "tableflow_orders_closed_total",
    "Total number of orders closed after customer confirmation.",
)

TICKET_TRANSITION_TOTAL = Counter(
    "tableflow_ticket_transition_total",
    "Total number of ticket lifecycle transitions.",
    ["stream", "from", "to"],
)

TICKET_TIME_TO_READY_SECONDS = Histogram(
    "tableflow_ticket_time_to_ready_seconds",
    "Time between ticket creation and readiness.",
    ["stream"],
)

TICKET_TIME_TO_DELIVERED_SECONDS = Histogram(
    "tableflow_ticket_time_to_delivered_seconds",
    "Time between ticket readiness and delivery.",
    ["stream"],
)

ISSUES_CREATED_TOTAL = Counter(
    "tableflow_issues_created_total",
    "Total number of issues reported by customers.",
    ["scope", "type"],
)

ISSUES_ACKNOWLEDGED_TOTAL = Counter(
    "tableflow_issues_acknowledged_total",
    "Total number of issues acknowledged by runners, including runner-raised ones.",
)

ISSUES_RESOLVED_TOTAL = Counter(
    "tableflow_issues_resolved_total",
    "Total number of issues resolved.",
    ["resolved_by"],
)

LIFECYCLE_CONFLICTS_TOTAL = Counter(
    "tableflow_lifecycle_conflicts_total",
    "Total number of optimistic concurrency losses.",
    ["operation", "outcome"],
)

STATION_QUEUE_SIZE = Gauge(
    "tableflow_station_queue_size",
    "Current number of tickets waiting on a preparation station.",
    ["stream"],
)

RUNNER_QUEUE_SIZE = Gauge(
    "tableflow_runner_queue_size",
    "Current number of runner work items by kind.",
    ["kind"],
)


def record_order_placed() -> None:
    ORDERS_PLACED_TOTAL.inc()


def record_order_closed() -> None:
    ORDERS_CLOSED_TOTAL.inc()


def record_ticket_transition(ticket: Ticket, from_status: TicketStatus, now: datetime) -> None:
    TICKET_TRANSITION_TOTAL.labels(
        **{"stream": ticket.stream.value, "from": from_status.value, "to": ticket.status.value}
    ).inc()
    if ticket.status == TicketStatus.READY:
        TICKET_TIME_TO_READY_SECONDS.labels(stream=ticket.stream.value).observe(
            max((now - ticket.created_at).total_seconds(), 0.0)
        )
    elif ticket.status == TicketStatus.DELIVERED and ticket.ready_at is not None:
        TICKET_TIME_TO_DELIVERED_SECONDS.labels(stream=ticket.stream.value).observe(
            max((now - ticket.ready_at).total_seconds(), 0.0)
        )


def record_issue_created(scope: str, issue_type: str) -> None:
    ISSUES_CREATED_TOTAL.labels(scope=scope, type=issue_type).inc()


def record_issues_acknowledged(count: int) -> None:
    ISSUES_ACKNOWLEDGED_TOTAL.inc(count)


def record_issues_resolved(resolved_by: str, count: int) -> None:
    ISSUES_RESOLVED_TOTAL.labels(resolved_by=resolved_by).inc(count)


def record_conflict(operation: str, outcome: str) -> None:
    LIFECYCLE_CONFLICTS_TOTAL.labels(operation=operation, outcome=outcome).inc()


def record_station_queue_size(stream: str, size: int) -> None:
    STATION_QUEUE_SIZE.labels(stream=stream).set(size)


def record_runner_queue_size(kind: str, size: int) -> None:
    RUNNER_QUEUE_SIZE.labels(kind=kind).set(size)
