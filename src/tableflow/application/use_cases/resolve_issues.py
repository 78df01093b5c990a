from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from tableflow.application.dto.responses import IssueBatchResponse
from tableflow.application.mappers.event_envelope import serialize_issues_event
from tableflow.application.mappers.order_mapper import to_issue_batch_response
from tableflow.application.metrics.order_lifecycle import record_issues_resolved
from tableflow.application.ports.publisher import EventPublisher
from tableflow.application.ports.repositories import LifecycleStore
from tableflow.application.use_cases.concurrency import run_with_retry
from tableflow.application.use_cases.context import RequestContext
from tableflow.application.use_cases.errors import OrderNotFoundError
from tableflow.application.use_cases.issue_scope import locate_scope, scope_label
from tableflow.application.use_cases.notifications import order_topics, publish_to_topics
from tableflow.application.use_cases.order_closing import (
    SettledOrder,
    announce_settlement,
    settle_order,
)
from tableflow.domain.common.ids import OrderCode
from tableflow.domain.issue.entities import Issue, IssueScope, ResolvedBy
from tableflow.domain.issue.state import IssueStatus
from tableflow.domain.order.events import IssuesChanged

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Resolved:
    resolved: list[Issue]
    settled: SettledOrder


class ResolveIssues:
    def __init__(self, store: LifecycleStore, publisher: EventPublisher) -> None:
        self._store = store
        self._publisher = publisher

    def execute(
        self,
        order_code: OrderCode,
        scope: IssueScope,
        resolved_by: ResolvedBy,
        ctx: RequestContext,
        note: str | None = None,
    ) -> IssueBatchResponse:
        now = datetime.now(timezone.utc)
        result = run_with_retry(
            "resolve_issues",
            lambda: self._attempt(order_code, scope, resolved_by, note, now),
        )

        settled = result.settled
        count = len(result.resolved)
        record_issues_resolved(resolved_by.value, count)
        logger.info(
            "issues_resolved",
            extra={
                "order_code": str(settled.order.code),
                "scope": scope_label(scope),
                "resolved_by": resolved_by.value,
                "count": count,
                "actor": ctx.actor,
            },
        )

        if result.resolved:
            streams = sorted({issue.stream for issue in result.resolved if issue.stream}, key=lambda s: s.value)
            message = serialize_issues_event(
                IssuesChanged(
                    event_type="issues.resolved",
                    code=settled.order.code,
                    table_number=settled.order.table_number,
                    issue_ids=[issue.issue_id for issue in result.resolved],
                    status=IssueStatus.RESOLVED,
                    streams=streams,
                    resolution_required=settled.order.resolution_required,
                    occurred_at=now,
                ),
                trace_id=ctx.trace_id,
                request_id=ctx.request_id,
                actor=ctx.actor,
            )
            publish_to_topics(self._publisher, order_topics(settled.order), message)
        announce_settlement(self._publisher, settled, ctx, now)

        return to_issue_batch_response(count, settled.order, settled.tickets, settled.issues)

    def _attempt(
        self,
        order_code: OrderCode,
        scope: IssueScope,
        resolved_by: ResolvedBy,
        note: str | None,
        now: datetime,
    ) -> _Resolved:
        with self._store.transaction() as tx:
            order = tx.get_order_by_code(order_code)
            if order is None:
                raise OrderNotFoundError(f"order {order_code} not found")

            stream, _ = locate_scope(scope, tx.list_tickets(order.order_id))
            resolved: list[Issue] = []
            for issue in tx.list_issues(order.order_id):
                if issue.is_resolved or not issue.covered_by(scope, ticket_stream=stream):
                    continue
                closed_issue = issue.resolve(now, resolved_by=resolved_by, note=note)
                tx.update_issue(closed_issue, expected_status=issue.status)
                resolved.append(closed_issue)

            # The flag is recomputed over every issue of the order, not only this scope.
            settled = settle_order(tx, order, now)
            return _Resolved(resolved=resolved, settled=settled)
