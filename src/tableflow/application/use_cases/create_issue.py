from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import uuid4

from tableflow.application.dto.responses import IssueResponse
from tableflow.application.mappers.event_envelope import serialize_issues_event
from tableflow.application.mappers.order_mapper import to_issue_response
from tableflow.application.metrics.order_lifecycle import record_issue_created
from tableflow.application.ports.publisher import EventPublisher
from tableflow.application.ports.repositories import LifecycleStore
from tableflow.application.use_cases.concurrency import run_with_retry
from tableflow.application.use_cases.context import RequestContext
from tableflow.application.use_cases.errors import (
    InvalidIssueTypeError,
    IssueTooEarlyError,
    OrderAlreadyClosedError,
    OrderNotFoundError,
)
from tableflow.application.use_cases.issue_scope import locate_scope, scope_label
from tableflow.application.use_cases.notifications import order_topics, publish_to_topics
from tableflow.application.use_cases.order_closing import SettledOrder, settle_order
from tableflow.domain.common.ids import IssueId, OrderCode
from tableflow.domain.issue.entities import (
    Issue,
    IssueScope,
    allowed_issue_types,
    is_allowed_issue_type,
)
from tableflow.domain.issue.state import IssueStateMachine
from tableflow.domain.order.events import IssuesChanged
from tableflow.domain.ticket.entities import Ticket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Created:
    issue: Issue
    settled: SettledOrder


def _require_delivered(ticket: Ticket) -> None:
    if not ticket.is_terminal_success:
        raise IssueTooEarlyError(
            f"issues can only be reported once the {ticket.stream.value} ticket is delivered",
            ticket_status=ticket.status.value,
        )


class CreateIssue:
    def __init__(self, store: LifecycleStore, publisher: EventPublisher) -> None:
        self._store = store
        self._publisher = publisher

    def execute(
        self,
        order_code: OrderCode,
        scope: IssueScope,
        issue_type: str,
        description: str | None,
        ctx: RequestContext,
    ) -> IssueResponse:
        normalized_type = issue_type.strip().lower()
        now = datetime.now(timezone.utc)
        result = run_with_retry(
            "create_issue",
            lambda: self._attempt(order_code, scope, normalized_type, description, now),
        )

        issue = result.issue
        order = result.settled.order
        record_issue_created(scope=scope_label(scope), issue_type=issue.issue_type)
        logger.info(
            "issue_created",
            extra={
                "order_code": str(order.code),
                "issue_id": str(issue.issue_id),
                "ticket_id": str(issue.ticket_id) if issue.ticket_id else None,
                "stream": issue.stream.value if issue.stream else None,
                "issue_type": issue.issue_type,
            },
        )

        streams = [issue.stream] if issue.stream else []
        message = serialize_issues_event(
            IssuesChanged(
                event_type="issue.created",
                code=order.code,
                table_number=order.table_number,
                issue_ids=[issue.issue_id],
                status=issue.status,
                streams=streams,
                resolution_required=order.resolution_required,
                occurred_at=now,
            ),
            trace_id=ctx.trace_id,
            request_id=ctx.request_id,
            actor=ctx.actor,
        )
        publish_to_topics(self._publisher, order_topics(order), message)

        return to_issue_response(issue, order)

    def _attempt(
        self,
        order_code: OrderCode,
        scope: IssueScope,
        issue_type: str,
        description: str | None,
        now: datetime,
    ) -> _Created:
        with self._store.transaction() as tx:
            order = tx.get_order_by_code(order_code)
            if order is None:
                raise OrderNotFoundError(f"order {order_code} not found")
            if order.is_closed:
                raise OrderAlreadyClosedError(f"order {order_code} is already closed")

            stream, ticket = locate_scope(scope, tx.list_tickets(order.order_id))
            if ticket is not None:
                _require_delivered(ticket)
            if not is_allowed_issue_type(issue_type, stream):
                raise InvalidIssueTypeError(
                    f"issue type {issue_type!r} is not allowed here",
                    allowed=sorted(allowed_issue_types(stream)),
                )

            issue = Issue(
                issue_id=IssueId(f"iss_{uuid4().hex[:12]}"),
                order_id=order.order_id,
                scope=scope,
                stream=stream,
                issue_type=issue_type,
                status=IssueStateMachine.initial_state(),
                created_at=now,
                description=description,
            )
            tx.add_issue(issue)
            settled = settle_order(tx, order, now)
            return _Created(issue=issue, settled=settled)
