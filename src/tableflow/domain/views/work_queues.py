from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Union

from tableflow.domain.common.stream import Stream
from tableflow.domain.issue.entities import Issue
from tableflow.domain.issue.state import IssueStatus
from tableflow.domain.order.entities import Order
from tableflow.domain.ticket.entities import Ticket
from tableflow.domain.ticket.state import TicketStatus

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

RUNNER_ISSUE_STATUSES = frozenset({IssueStatus.OPEN, IssueStatus.RUNNER_ACK})
STATION_STATUSES = frozenset({TicketStatus.RECEIVED, TicketStatus.PREPARING})


@dataclass(frozen=True)
class IssueEntry:
    issue: Issue
    order: Order


@dataclass(frozen=True)
class TicketEntry:
    ticket: Ticket
    order: Order


RunnerQueueEntry = Union[IssueEntry, TicketEntry]


def runner_queue(
    issues: Iterable[IssueEntry],
    deliveries: Iterable[TicketEntry],
) -> list[RunnerQueueEntry]:
    # Problems first, newest on top; then ready tickets in the order they came up.
    issue_rows = sorted(
        (entry for entry in issues if entry.issue.status in RUNNER_ISSUE_STATUSES),
        key=lambda entry: (entry.issue.created_at, str(entry.issue.issue_id)),
        reverse=True,
    )
    delivery_rows = sorted(
        (entry for entry in deliveries if entry.ticket.status == TicketStatus.READY),
        key=lambda entry: (entry.ticket.ready_at or _EPOCH, str(entry.ticket.ticket_id)),
    )
    return [*issue_rows, *delivery_rows]


def station_queue(entries: Iterable[TicketEntry], stream: Stream) -> list[TicketEntry]:
    """Tickets a kitchen or bar still has to work on, oldest first."""
    return sorted(
        (
            entry
            for entry in entries
            if entry.ticket.stream == stream and entry.ticket.status in STATION_STATUSES
        ),
        key=lambda entry: (entry.ticket.created_at, str(entry.ticket.ticket_id)),
    )
