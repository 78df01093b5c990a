from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from uuid import uuid4

from tableflow.application.dto.requests import PlaceOrderRequest
from tableflow.application.dto.responses import OrderDetailResponse
from tableflow.application.mappers.event_envelope import serialize_order_placed_event
from tableflow.application.mappers.order_mapper import to_order_detail_response
from tableflow.application.metrics.order_lifecycle import record_order_placed
from tableflow.application.ports.publisher import EventPublisher
from tableflow.application.ports.repositories import DuplicateOrderCodeError, LifecycleStore
from tableflow.application.use_cases.context import RequestContext
from tableflow.application.use_cases.errors import InvalidOrderError
from tableflow.application.use_cases.notifications import order_topics, publish_to_topics
from tableflow.domain.common.ids import LineItemId, OrderCode, OrderId, TicketId
from tableflow.domain.order.entities import PlacedOrder, create_placed_order
from tableflow.domain.order.events import OrderPlaced
from tableflow.domain.ticket.entities import LineItem

logger = logging.getLogger(__name__)

ORDER_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ORDER_CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 3


def generate_order_code() -> OrderCode:
    return OrderCode("".join(secrets.choice(ORDER_CODE_ALPHABET) for _ in range(ORDER_CODE_LENGTH)))


class PlaceOrder:
    def __init__(self, store: LifecycleStore, publisher: EventPublisher) -> None:
        self._store = store
        self._publisher = publisher

    def execute(self, request_dto: PlaceOrderRequest, ctx: RequestContext) -> OrderDetailResponse:
        try:
            lines = [
                LineItem(
                    line_id=LineItemId(f"lin_{uuid4().hex[:12]}"),
                    stream=line.stream,
                    name=line.name.strip(),
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    notes=line.notes,
                )
                for line in request_dto.lines
            ]
        except ValueError as exc:
            raise InvalidOrderError(str(exc)) from exc

        now = datetime.now(timezone.utc)
        placed = self._place(request_dto.table_number, lines, now)

        record_order_placed()
        logger.info(
            "order_placed",
            extra={
                "order_code": str(placed.order.code),
                "table_number": placed.order.table_number,
                "streams": [ticket.stream.value for ticket in placed.tickets],
            },
        )

        streams = [ticket.stream for ticket in placed.tickets]
        message = serialize_order_placed_event(
            OrderPlaced(
                code=placed.order.code,
                table_number=placed.order.table_number,
                streams=streams,
                occurred_at=now,
            ),
            trace_id=ctx.trace_id,
            request_id=ctx.request_id,
            actor=ctx.actor,
        )
        publish_to_topics(self._publisher, order_topics(placed.order, streams), message)

        return to_order_detail_response(placed.order, placed.tickets, [])

    def _place(self, table_number: int, lines: list[LineItem], now: datetime) -> PlacedOrder:
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            placed = create_placed_order(
                order_id=OrderId(f"ord_{uuid4().hex[:12]}"),
                code=generate_order_code(),
                table_number=table_number,
                lines=lines,
                now=now,
                ticket_id_factory=lambda _stream: TicketId(f"tkt_{uuid4().hex[:12]}"),
            )
            try:
                with self._store.transaction() as tx:
                    tx.add_order(placed.order, placed.tickets)
                return placed
            except DuplicateOrderCodeError:
                if attempt == MAX_CODE_ATTEMPTS:
                    raise
                logger.info("order_code_collision", extra={"attempt": attempt})
        raise AssertionError("unreachable")
