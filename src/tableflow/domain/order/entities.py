from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable

from tableflow.domain.common.ids import OrderCode, OrderId, TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.ticket.entities import LineItem, Ticket
from tableflow.domain.ticket.state import TicketStateMachine


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    code: OrderCode
    table_number: int
    created_at: datetime
    closed_at: datetime | None = None
    customer_confirmed_at: datetime | None = None
    resolution_required: bool = False
    version: int = 1

    def __post_init__(self) -> None:
        if self.table_number < 1:
            raise ValueError("table_number must be >= 1")
        if not self.code:
            raise ValueError("order code must not be empty")
        if self.closed_at is not None and self.customer_confirmed_at is None:
            raise ValueError("closed_at requires customer_confirmed_at")

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    def confirm_delivery(self, now: datetime) -> Order:
        if self.customer_confirmed_at is not None:
            return self
        return replace(self, customer_confirmed_at=now)

    def flag_resolution(self, required: bool) -> Order:
        return replace(self, resolution_required=required)

    def close(self, now: datetime) -> Order:
        if self.closed_at is not None:
            return self
        if self.customer_confirmed_at is None:
            raise OrderNotConfirmedError(f"order {self.code} has not been confirmed by the customer")
        return replace(self, closed_at=now)


@dataclass(frozen=True)
class PlacedOrder:
    order: Order
    tickets: list[Ticket]


def create_placed_order(
    order_id: OrderId,
    code: OrderCode,
    table_number: int,
    lines: list[LineItem],
    now: datetime,
    ticket_id_factory: Callable[[Stream], TicketId],
) -> PlacedOrder:
    if not lines:
        raise ValueError("order must contain at least one line")

    order = Order(order_id=order_id, code=code, table_number=table_number, created_at=now)

    lines_by_stream: dict[Stream, list[LineItem]] = {}
    for line in lines:
        lines_by_stream.setdefault(line.stream, []).append(line)

    tickets = [
        Ticket(
            ticket_id=ticket_id_factory(stream),
            order_id=order_id,
            stream=stream,
            status=TicketStateMachine.initial_state(),
            created_at=now,
            items=stream_lines,
        )
        for stream, stream_lines in sorted(lines_by_stream.items(), key=lambda entry: entry[0].value)
    ]
    return PlacedOrder(order=order, tickets=tickets)


class OrderNotConfirmedError(Exception):
    pass
