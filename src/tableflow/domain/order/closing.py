from __future__ import annotations

from collections.abc import Iterable

from tableflow.domain.issue.entities import Issue
from tableflow.domain.order.entities import Order
from tableflow.domain.ticket.entities import Ticket

TICKETS_NOT_DELIVERED = "TICKETS_NOT_DELIVERED"
UNRESOLVED_ISSUES = "UNRESOLVED_ISSUES"
NOT_CONFIRMED_BY_CUSTOMER = "NOT_CONFIRMED_BY_CUSTOMER"


def all_tickets_done(tickets: Iterable[Ticket]) -> bool:
    tickets = list(tickets)
    return bool(tickets) and all(ticket.is_terminal_success for ticket in tickets)


def has_unresolved_issues(issues: Iterable[Issue]) -> bool:
    return any(not issue.is_resolved for issue in issues)


def closing_blockers(order: Order, tickets: Iterable[Ticket], issues: Iterable[Issue]) -> list[str]:
    """Return the reasons an order cannot be closed right now; empty means it may close."""
    blockers: list[str] = []
    if not all_tickets_done(tickets):
        blockers.append(TICKETS_NOT_DELIVERED)
    if has_unresolved_issues(issues):
        blockers.append(UNRESOLVED_ISSUES)
    if order.customer_confirmed_at is None:
        blockers.append(NOT_CONFIRMED_BY_CUSTOMER)
    return blockers


def needs_customer_confirmation(
    order: Order,
    tickets: Iterable[Ticket],
    issues: Iterable[Issue],
) -> bool:
    return (
        order.customer_confirmed_at is None
        and all_tickets_done(tickets)
        and not has_unresolved_issues(issues)
    )
