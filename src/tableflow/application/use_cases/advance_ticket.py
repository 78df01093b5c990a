from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from tableflow.application.dto.responses import TicketResponse
from tableflow.application.mappers.event_envelope import serialize_ticket_event
from tableflow.application.mappers.order_mapper import to_ticket_response
from tableflow.application.metrics.order_lifecycle import record_conflict, record_ticket_transition
from tableflow.application.ports.publisher import EventPublisher
from tableflow.application.ports.repositories import LifecycleStore, OptimisticConcurrencyError
from tableflow.application.use_cases.concurrency import run_with_retry
from tableflow.application.use_cases.context import RequestContext
from tableflow.application.use_cases.errors import (
    LifecycleConflictError,
    OrderNotFoundError,
    TicketNotFoundError,
)
from tableflow.application.use_cases.notifications import order_topics, publish_to_topics
from tableflow.application.use_cases.order_closing import (
    SettledOrder,
    announce_settlement,
    settle_order,
)
from tableflow.domain.common.ids import TicketId
from tableflow.domain.order.entities import Order
from tableflow.domain.order.events import TicketStatusChanged
from tableflow.domain.ticket.entities import Ticket
from tableflow.domain.ticket.state import TicketStatus

logger = logging.getLogger(__name__)

_OPERATION = "advance_ticket"


@dataclass(frozen=True)
class _Advanced:
    previous: Ticket
    ticket: Ticket
    order: Order
    settled: SettledOrder | None


class AdvanceTicket:
    def __init__(self, store: LifecycleStore, publisher: EventPublisher) -> None:
        self._store = store
        self._publisher = publisher

    def execute(
        self,
        ticket_id: TicketId,
        target_status: TicketStatus,
        ctx: RequestContext,
    ) -> TicketResponse:
        now = datetime.now(timezone.utc)
        result = run_with_retry(_OPERATION, lambda: self._attempt(ticket_id, target_status, now))

        record_ticket_transition(result.ticket, from_status=result.previous.status, now=now)
        logger.info(
            "ticket_advanced",
            extra={
                "order_code": str(result.order.code),
                "ticket_id": str(ticket_id),
                "stream": result.ticket.stream.value,
                "from_status": result.previous.status.value,
                "to_status": result.ticket.status.value,
                "actor": ctx.actor,
            },
        )

        message = serialize_ticket_event(
            TicketStatusChanged(
                code=result.order.code,
                table_number=result.order.table_number,
                ticket_id=result.ticket.ticket_id,
                stream=result.ticket.stream,
                from_status=result.previous.status,
                to_status=result.ticket.status,
                occurred_at=now,
            ),
            trace_id=ctx.trace_id,
            request_id=ctx.request_id,
            actor=ctx.actor,
        )
        publish_to_topics(
            self._publisher,
            order_topics(result.order, [result.ticket.stream]),
            message,
        )
        if result.settled is not None:
            announce_settlement(self._publisher, result.settled, ctx, now)

        return to_ticket_response(result.ticket, result.order)

    def _attempt(self, ticket_id: TicketId, target_status: TicketStatus, now: datetime) -> _Advanced:
        observed: TicketStatus | None = None
        try:
            with self._store.transaction() as tx:
                ticket = tx.get_ticket(ticket_id)
                if ticket is None:
                    raise TicketNotFoundError(f"ticket {ticket_id} not found")
                observed = ticket.status
                order = tx.get_order(ticket.order_id)
                if order is None:
                    raise OrderNotFoundError(f"order {ticket.order_id} not found")

                advanced = ticket.advance(target_status, now)
                persisted = tx.update_ticket(advanced, expected_version=ticket.version)

                settled: SettledOrder | None = None
                if persisted.is_terminal_success:
                    # Closing still needs customer confirmation; settle_order only closes when all hold.
                    settled = settle_order(tx, order, now)
                    order = settled.order
                return _Advanced(previous=ticket, ticket=persisted, order=order, settled=settled)
        except OptimisticConcurrencyError:
            current = self._store.get_ticket(ticket_id)
            if current is None:
                raise TicketNotFoundError(f"ticket {ticket_id} not found")
            if current.status != observed:
                record_conflict(operation=_OPERATION, outcome="surfaced")
                raise LifecycleConflictError(
                    f"ticket {ticket_id} moved to status={current.status.value} concurrently",
                    operation=_OPERATION,
                )
            raise
