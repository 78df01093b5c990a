from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from tableflow.application.mappers.event_envelope import serialize_order_state_event
from tableflow.application.metrics.order_lifecycle import record_order_closed
from tableflow.application.ports.publisher import EventPublisher
from tableflow.application.ports.repositories import LifecycleTransaction
from tableflow.application.use_cases.context import RequestContext
from tableflow.application.use_cases.notifications import order_topics, publish_to_topics
from tableflow.domain.issue.entities import Issue
from tableflow.domain.order.closing import closing_blockers, has_unresolved_issues
from tableflow.domain.order.entities import Order
from tableflow.domain.order.events import OrderStateChanged
from tableflow.domain.ticket.entities import Ticket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettledOrder:
    order: Order
    tickets: list[Ticket]
    issues: list[Issue]
    closed_now: bool
    confirmed_now: bool

    @property
    def blockers(self) -> list[str]:
        if self.order.is_closed:
            return []
        return closing_blockers(self.order, self.tickets, self.issues)


def settle_order(
    tx: LifecycleTransaction,
    order: Order,
    now: datetime,
    *,
    confirm_delivery: bool = False,
) -> SettledOrder:
    """Recompute the resolution flag and closing state of ``order`` inside ``tx``.

    Must be called after the transaction's ticket or issue writes so the
    re-read rows include them. The order row is written back conditioned on
    the version read earlier in the same transaction; a concurrent writer to
    the same order makes this raise ``OptimisticConcurrencyError`` and the
    whole transaction rolls back. Closed orders are returned untouched.
    """
    tickets = tx.list_tickets(order.order_id)
    issues = tx.list_issues(order.order_id)
    if order.is_closed:
        return SettledOrder(order, tickets, issues, closed_now=False, confirmed_now=False)

    updated = order.flag_resolution(has_unresolved_issues(issues))
    if confirm_delivery:
        updated = updated.confirm_delivery(now)
    confirmed_now = order.customer_confirmed_at is None and updated.customer_confirmed_at is not None

    closed_now = False
    if not closing_blockers(updated, tickets, issues):
        updated = updated.close(now)
        closed_now = True

    persisted = tx.update_order(updated, expected_version=order.version)
    return SettledOrder(
        persisted,
        tickets,
        issues,
        closed_now=closed_now,
        confirmed_now=confirmed_now,
    )


def announce_settlement(
    publisher: EventPublisher,
    settled: SettledOrder,
    ctx: RequestContext,
    now: datetime,
) -> None:
    """Record and publish confirmation/closing after the transaction committed."""
    events: list[str] = []
    if settled.confirmed_now:
        events.append("order.delivery_confirmed")
    if settled.closed_now:
        events.append("order.closed")
        record_order_closed()
        logger.info(
            "order_closed",
            extra={"order_code": str(settled.order.code), "table_number": settled.order.table_number},
        )

    for event_type in events:
        message = serialize_order_state_event(
            OrderStateChanged(
                event_type=event_type,
                code=settled.order.code,
                table_number=settled.order.table_number,
                customer_confirmed_at=settled.order.customer_confirmed_at,
                closed_at=settled.order.closed_at,
                occurred_at=now,
            ),
            trace_id=ctx.trace_id,
            request_id=ctx.request_id,
            actor=ctx.actor,
        )
        publish_to_topics(publisher, order_topics(settled.order), message)
