from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Union

from tableflow.domain.common.ids import IssueId, OrderId, TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.issue.state import (
    UNRESOLVED_STATUSES,
    IssueStateMachine,
    IssueStatus,
)

OTHER_ISSUE_TYPE = "other"

ISSUE_TYPES_BY_STREAM: dict[Stream, frozenset[str]] = {
    Stream.FOOD: frozenset({"wrong_food", "missing_item", "cold", "hygiene", OTHER_ISSUE_TYPE}),
    Stream.DRINKS: frozenset({"wrong_drink", "missing_item", "cold", "hygiene", OTHER_ISSUE_TYPE}),
}
ORDER_WIDE_ISSUE_TYPES: frozenset[str] = frozenset().union(*ISSUE_TYPES_BY_STREAM.values())


class ResolvedBy(str, Enum):
    ADMIN = "admin"
    CUSTOMER_CONFIRMATION = "customer_confirmation"


@dataclass(frozen=True)
class TicketScope:
    ticket_id: TicketId


@dataclass(frozen=True)
class StreamScope:
    stream: Stream


@dataclass(frozen=True)
class OrderWideScope:
    pass


IssueScope = Union[TicketScope, StreamScope, OrderWideScope]


def resolve_scope(ticket_id: str | None, stream: Stream | None) -> IssueScope:
    """Pick the narrowest scope the caller supplied: ticket, then stream, then the whole order."""
    if ticket_id:
        return TicketScope(ticket_id=TicketId(ticket_id))
    if stream is not None:
        return StreamScope(stream=stream)
    return OrderWideScope()


def allowed_issue_types(stream: Stream | None) -> frozenset[str]:
    if stream is None:
        return ORDER_WIDE_ISSUE_TYPES
    return ISSUE_TYPES_BY_STREAM[stream]


def is_allowed_issue_type(issue_type: str, stream: Stream | None) -> bool:
    return issue_type in allowed_issue_types(stream)


@dataclass(frozen=True)
class Issue:
    issue_id: IssueId
    order_id: OrderId
    scope: IssueScope
    stream: Stream | None
    issue_type: str
    status: IssueStatus
    created_at: datetime
    description: str | None = None
    resolved_at: datetime | None = None
    resolved_by: ResolvedBy | None = None
    resolution_note: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.scope, StreamScope) and self.stream != self.scope.stream:
            raise ValueError("issue stream must match its stream scope")
        if isinstance(self.scope, OrderWideScope) and self.stream is not None:
            raise ValueError("order-wide issues carry no stream")
        if self.status == IssueStatus.RESOLVED and self.resolved_at is None:
            raise ValueError("resolved_at must be set when issue status is resolved")

    @property
    def ticket_id(self) -> TicketId | None:
        if isinstance(self.scope, TicketScope):
            return self.scope.ticket_id
        return None

    @property
    def is_resolved(self) -> bool:
        return self.status not in UNRESOLVED_STATUSES

    def acknowledge_by_runner(self) -> Issue:
        IssueStateMachine.assert_transition(self.status, IssueStatus.RUNNER_ACK)
        return replace(self, status=IssueStatus.RUNNER_ACK)

    def resolve(self, now: datetime, resolved_by: ResolvedBy, note: str | None = None) -> Issue:
        IssueStateMachine.assert_transition(self.status, IssueStatus.RESOLVED)
        return replace(
            self,
            status=IssueStatus.RESOLVED,
            resolved_at=now,
            resolved_by=resolved_by,
            resolution_note=note,
        )

    def covered_by(self, scope: IssueScope, ticket_stream: Stream | None = None) -> bool:
        """Whether an action on ``scope`` applies to this issue.

        A ticket scope also covers the stream-wide and order-wide issues that
        touch that ticket; ``ticket_stream`` is the scoped ticket's stream.
        """
        if isinstance(scope, OrderWideScope):
            return True
        if isinstance(scope, StreamScope):
            return self.stream == scope.stream
        if self.ticket_id is not None:
            return self.ticket_id == scope.ticket_id
        if isinstance(self.scope, OrderWideScope):
            return True
        return ticket_stream is not None and self.stream == ticket_stream


def awaiting_fix_confirmation(issues: list[Issue], ticket_id: TicketId, stream: Stream) -> bool:
    """True when a runner has acknowledged a problem touching this ticket and the customer has not confirmed."""
    for issue in issues:
        if issue.status != IssueStatus.RUNNER_ACK:
            continue
        if isinstance(issue.scope, OrderWideScope):
            return True
        if issue.ticket_id == ticket_id or issue.stream == stream:
            return True
    return False
