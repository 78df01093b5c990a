from __future__ import annotations

from tableflow.application.use_cases.errors import TicketNotFoundError
from tableflow.domain.common.stream import Stream
from tableflow.domain.issue.entities import IssueScope, OrderWideScope, StreamScope, TicketScope
from tableflow.domain.ticket.entities import Ticket


def scope_label(scope: IssueScope) -> str:
    if isinstance(scope, TicketScope):
        return "ticket"
    if isinstance(scope, StreamScope):
        return "stream"
    return "order"


def locate_scope(scope: IssueScope, tickets: list[Ticket]) -> tuple[Stream | None, Ticket | None]:
    """Resolve the stream and ticket a scope refers to within one order.

    Order-wide scopes resolve to ``(None, None)``. Ticket and stream scopes
    must name a ticket that belongs to the order, otherwise
    ``TicketNotFoundError`` is raised.
    """
    if isinstance(scope, OrderWideScope):
        return None, None
    if isinstance(scope, TicketScope):
        ticket = next((t for t in tickets if t.ticket_id == scope.ticket_id), None)
        if ticket is None:
            raise TicketNotFoundError(f"ticket {scope.ticket_id} is not part of this order")
        return ticket.stream, ticket
    ticket = next((t for t in tickets if t.stream == scope.stream), None)
    if ticket is None:
        raise TicketNotFoundError(f"order has no {scope.stream.value} ticket")
    return scope.stream, ticket
