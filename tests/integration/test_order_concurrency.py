from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

import pytest

from tableflow.application.use_cases.advance_ticket import AdvanceTicket
from tableflow.application.use_cases.confirm_delivery import ConfirmDelivery
from tableflow.application.use_cases.errors import LifecycleConflictError
from tableflow.domain.common.ids import OrderCode
from tableflow.domain.common.stream import Stream
from tableflow.domain.ticket.state import TicketStatus
from tableflow.infrastructure.db.repositories.lifecycle_store import SqlAlchemyLifecycleStore

from conftest import CUSTOMER, KITCHEN, RUNNER, place_order, ticket_id_for


class _InterleavedTransaction:
    def __init__(self, tx, store: "InterleavingStore") -> None:
        self._tx = tx
        self._store = store

    def update_ticket(self, ticket, expected_version: int):
        self._store.interleave()
        return self._tx.update_ticket(ticket, expected_version=expected_version)

    def __getattr__(self, name: str):
        return getattr(self._tx, name)


class InterleavingStore:
    """Runs a competing operation right before a transaction's first ticket write."""

    def __init__(self, base: SqlAlchemyLifecycleStore, competitor: Callable[[], None], times: int = 1) -> None:
        self._base = base
        self._competitor = competitor
        self._remaining = times

    def interleave(self) -> None:
        if self._remaining > 0:
            self._remaining -= 1
            self._competitor()

    @contextmanager
    def transaction(self) -> Iterator[_InterleavedTransaction]:
        with self._base.transaction() as tx:
            yield _InterleavedTransaction(tx, self)

    def __getattr__(self, name: str):
        return getattr(self._base, name)


def _advance(store, publisher, ticket_id, *statuses: TicketStatus) -> None:
    use_case = AdvanceTicket(store=store, publisher=publisher)
    for status in statuses:
        use_case.execute(ticket_id=ticket_id, target_status=status, ctx=KITCHEN)


def test_concurrent_status_change_surfaces_conflict(store, publisher) -> None:
    order = place_order(store, publisher)
    ticket_id = ticket_id_for(order, Stream.FOOD)
    _advance(store, publisher, ticket_id, TicketStatus.PREPARING)

    racing = InterleavingStore(
        store,
        lambda: _advance(store, publisher, ticket_id, TicketStatus.READY),
    )

    with pytest.raises(LifecycleConflictError) as exc_info:
        AdvanceTicket(store=racing, publisher=publisher).execute(
            ticket_id=ticket_id,
            target_status=TicketStatus.READY,
            ctx=KITCHEN,
        )

    assert exc_info.value.operation == "advance_ticket"
    current = store.get_ticket(ticket_id)
    assert current.status == TicketStatus.READY
    assert current.version == 3


def test_lost_order_write_is_retried_with_fresh_state(store, publisher) -> None:
    order = place_order(store, publisher)
    code = OrderCode(order.orderCode)
    ticket_id = ticket_id_for(order, Stream.FOOD)
    _advance(store, publisher, ticket_id, TicketStatus.PREPARING, TicketStatus.READY)

    racing = InterleavingStore(
        store,
        lambda: ConfirmDelivery(store=store, publisher=publisher).execute(order_code=code, ctx=CUSTOMER),
    )

    delivered = AdvanceTicket(store=racing, publisher=publisher).execute(
        ticket_id=ticket_id,
        target_status=TicketStatus.DELIVERED,
        ctx=RUNNER,
    )

    assert delivered.status == "delivered"
    settled = store.get_order_by_code(code)
    assert settled.customer_confirmed_at is not None
    assert settled.closed_at is not None
    assert store.get_ticket(ticket_id).version == 4


def test_repeated_order_conflicts_give_up_and_roll_back(store, publisher) -> None:
    order = place_order(store, publisher)
    code = OrderCode(order.orderCode)
    ticket_id = ticket_id_for(order, Stream.FOOD)
    _advance(store, publisher, ticket_id, TicketStatus.PREPARING, TicketStatus.READY)

    racing = InterleavingStore(
        store,
        lambda: ConfirmDelivery(store=store, publisher=publisher).execute(order_code=code, ctx=CUSTOMER),
        times=2,
    )

    with pytest.raises(LifecycleConflictError):
        AdvanceTicket(store=racing, publisher=publisher).execute(
            ticket_id=ticket_id,
            target_status=TicketStatus.DELIVERED,
            ctx=RUNNER,
        )

    assert store.get_ticket(ticket_id).status == TicketStatus.READY
    assert store.get_order_by_code(code).closed_at is None
