from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from tableflow.domain.common.ids import IssueId, OrderCode, TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.issue.state import IssueStatus
from tableflow.domain.ticket.state import TicketStatus


@dataclass(frozen=True)
class OrderPlaced:
    code: OrderCode
    table_number: int
    streams: list[Stream]
    occurred_at: datetime


@dataclass(frozen=True)
class TicketStatusChanged:
    code: OrderCode
    table_number: int
    ticket_id: TicketId
    stream: Stream
    from_status: TicketStatus
    to_status: TicketStatus
    occurred_at: datetime


@dataclass(frozen=True)
class IssuesChanged:
    """Emitted for issue creation, runner acknowledgement and resolution."""

    event_type: str
    code: OrderCode
    table_number: int
    issue_ids: list[IssueId]
    status: IssueStatus
    streams: list[Stream]
    resolution_required: bool
    occurred_at: datetime


@dataclass(frozen=True)
class OrderStateChanged:
    """Emitted when the customer confirms delivery or the order closes."""

    event_type: str
    code: OrderCode
    table_number: int
    customer_confirmed_at: datetime | None
    closed_at: datetime | None
    occurred_at: datetime
