from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from tableflow.domain.common.ids import OrderCode, OrderId, TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.issue.entities import Issue
from tableflow.domain.issue.state import IssueStatus
from tableflow.domain.order.entities import Order
from tableflow.domain.ticket.entities import Ticket
from tableflow.domain.ticket.state import TicketStatus


class LifecycleTransaction(Protocol):
    """Reads and conditional writes that commit or roll back together."""

    def get_order(self, order_id: OrderId) -> Order | None: ...

    def get_order_by_code(self, code: OrderCode) -> Order | None: ...

    def get_ticket(self, ticket_id: TicketId) -> Ticket | None: ...

    def list_tickets(self, order_id: OrderId) -> list[Ticket]: ...

    def list_issues(self, order_id: OrderId) -> list[Issue]: ...

    def add_order(self, order: Order, tickets: list[Ticket]) -> None: ...

    def update_ticket(self, ticket: Ticket, expected_version: int) -> Ticket: ...

    def add_issue(self, issue: Issue) -> None: ...

    def update_issue(self, issue: Issue, expected_status: IssueStatus) -> None: ...

    def update_order(self, order: Order, expected_version: int) -> Order: ...


class LifecycleStore(Protocol):
    def transaction(self) -> AbstractContextManager[LifecycleTransaction]: ...

    def get_order_by_code(self, code: OrderCode) -> Order | None: ...

    def get_ticket(self, ticket_id: TicketId) -> Ticket | None: ...

    def get_order_snapshot(self, code: OrderCode) -> OrderSnapshot | None: ...

    def list_tickets_with_orders(
        self,
        statuses: set[TicketStatus],
        stream: Stream | None = None,
    ) -> list[tuple[Ticket, Order]]: ...

    def list_issues_with_orders(
        self,
        statuses: set[IssueStatus] | None = None,
    ) -> list[tuple[Issue, Order]]: ...

    def get_runner_work(self, issue_statuses: set[IssueStatus]) -> RunnerWork: ...

    def list_orders_for_tables(
        self,
        table_numbers: list[int],
        closed_since: datetime,
    ) -> dict[int, TableOrdersData]: ...


class OptimisticConcurrencyError(Exception):
    pass


class DuplicateOrderCodeError(Exception):
    pass


@dataclass(frozen=True)
class OrderSnapshot:
    order: Order
    tickets: list[Ticket]
    issues: list[Issue]


@dataclass(frozen=True)
class TableOrdersData:
    active: list[Order]
    recent_closed: list[Order]


@dataclass(frozen=True)
class RunnerWork:
    issues: list[tuple[Issue, Order]]
    deliveries: list[tuple[Ticket, Order]]
