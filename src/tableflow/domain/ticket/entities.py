from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from tableflow.domain.common.ids import LineItemId, OrderId, TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.ticket.state import (
    TERMINAL_STATUSES,
    TERMINAL_SUCCESS_STATUSES,
    TicketStateMachine,
    TicketStatus,
)


@dataclass(frozen=True)
class LineItem:
    line_id: LineItemId
    stream: Stream
    name: str
    quantity: int
    unit_price_cents: int
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1")
        if self.unit_price_cents < 0:
            raise ValueError("unit_price_cents must be >= 0")
        if not self.name.strip():
            raise ValueError("line item name must not be blank")


@dataclass(frozen=True)
class Ticket:
    ticket_id: TicketId
    order_id: OrderId
    stream: Stream
    status: TicketStatus
    created_at: datetime
    ready_at: datetime | None = None
    delivered_at: datetime | None = None
    items: list[LineItem] = field(default_factory=list)
    version: int = 1

    def __post_init__(self) -> None:
        for item in self.items:
            if item.stream != self.stream:
                raise ValueError("line item stream must match ticket stream")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_terminal_success(self) -> bool:
        return self.status in TERMINAL_SUCCESS_STATUSES

    def advance(self, target: TicketStatus, now: datetime) -> Ticket:
        TicketStateMachine.assert_transition(self.status, target)
        changes: dict[str, object] = {"status": target}
        if target == TicketStatus.READY and self.ready_at is None:
            changes["ready_at"] = now
        if target == TicketStatus.DELIVERED and self.delivered_at is None:
            changes["delivered_at"] = now
        return replace(self, **changes)
