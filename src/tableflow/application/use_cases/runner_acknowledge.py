from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import uuid4

from tableflow.application.dto.responses import IssueBatchResponse
from tableflow.application.mappers.event_envelope import serialize_issues_event
from tableflow.application.mappers.order_mapper import to_issue_batch_response
from tableflow.application.metrics.order_lifecycle import record_issues_acknowledged
from tableflow.application.ports.publisher import EventPublisher
from tableflow.application.ports.repositories import LifecycleStore
from tableflow.application.use_cases.concurrency import run_with_retry
from tableflow.application.use_cases.context import RequestContext
from tableflow.application.use_cases.errors import OrderAlreadyClosedError, OrderNotFoundError
from tableflow.application.use_cases.issue_scope import locate_scope, scope_label
from tableflow.application.use_cases.notifications import order_topics, publish_to_topics
from tableflow.application.use_cases.order_closing import SettledOrder, settle_order
from tableflow.domain.common.ids import IssueId, OrderCode
from tableflow.domain.issue.entities import OTHER_ISSUE_TYPE, Issue, IssueScope
from tableflow.domain.issue.state import IssueStatus
from tableflow.domain.order.events import IssuesChanged

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Acknowledged:
    touched: list[Issue]
    inserted: bool
    settled: SettledOrder


class RunnerAcknowledge:
    """Mark the problems in a scope as being handled by a runner.

    Open issues in the scope move to ``runner_ack``. When the scope has no
    unresolved issue at all, the runner is flagging a fix on their own and a
    new ``runner_ack`` issue is recorded for it, so the order stays flagged
    until the customer confirms the fix.
    """

    def __init__(self, store: LifecycleStore, publisher: EventPublisher) -> None:
        self._store = store
        self._publisher = publisher

    def execute(self, order_code: OrderCode, scope: IssueScope, ctx: RequestContext) -> IssueBatchResponse:
        now = datetime.now(timezone.utc)
        result = run_with_retry("runner_acknowledge", lambda: self._attempt(order_code, scope, now))

        settled = result.settled
        count = len(result.touched)
        record_issues_acknowledged(count)
        logger.info(
            "issues_runner_acknowledged",
            extra={
                "order_code": str(settled.order.code),
                "scope": scope_label(scope),
                "count": count,
                "inserted": result.inserted,
                "actor": ctx.actor,
            },
        )

        if result.touched:
            streams = sorted({issue.stream for issue in result.touched if issue.stream}, key=lambda s: s.value)
            message = serialize_issues_event(
                IssuesChanged(
                    event_type="issues.acknowledged",
                    code=settled.order.code,
                    table_number=settled.order.table_number,
                    issue_ids=[issue.issue_id for issue in result.touched],
                    status=IssueStatus.RUNNER_ACK,
                    streams=streams,
                    resolution_required=settled.order.resolution_required,
                    occurred_at=now,
                ),
                trace_id=ctx.trace_id,
                request_id=ctx.request_id,
                actor=ctx.actor,
            )
            publish_to_topics(self._publisher, order_topics(settled.order), message)

        return to_issue_batch_response(count, settled.order, settled.tickets, settled.issues)

    def _attempt(self, order_code: OrderCode, scope: IssueScope, now: datetime) -> _Acknowledged:
        with self._store.transaction() as tx:
            order = tx.get_order_by_code(order_code)
            if order is None:
                raise OrderNotFoundError(f"order {order_code} not found")
            if order.is_closed:
                raise OrderAlreadyClosedError(f"order {order_code} is already closed")

            stream, _ = locate_scope(scope, tx.list_tickets(order.order_id))
            matching = [
                issue
                for issue in tx.list_issues(order.order_id)
                if not issue.is_resolved and issue.covered_by(scope, ticket_stream=stream)
            ]

            touched: list[Issue] = []
            for issue in matching:
                if issue.status != IssueStatus.OPEN:
                    continue
                acknowledged = issue.acknowledge_by_runner()
                tx.update_issue(acknowledged, expected_status=issue.status)
                touched.append(acknowledged)

            inserted = not matching
            if inserted:
                flagged = Issue(
                    issue_id=IssueId(f"iss_{uuid4().hex[:12]}"),
                    order_id=order.order_id,
                    scope=scope,
                    stream=stream,
                    issue_type=OTHER_ISSUE_TYPE,
                    status=IssueStatus.RUNNER_ACK,
                    created_at=now,
                )
                tx.add_issue(flagged)
                touched.append(flagged)

            settled = settle_order(tx, order, now)
            return _Acknowledged(touched=touched, inserted=inserted, settled=settled)
