from __future__ import annotations

import json

import pytest

from tableflow.application.use_cases.advance_ticket import AdvanceTicket
from tableflow.application.use_cases.confirm_delivery import ConfirmDelivery
from tableflow.application.use_cases.create_issue import CreateIssue
from tableflow.application.use_cases.errors import (
    InvalidIssueTypeError,
    InvalidTransitionError,
    IssueTooEarlyError,
    OrderAlreadyClosedError,
    OrderNotFoundError,
    TicketNotFoundError,
)
from tableflow.application.use_cases.get_order import GetOrderDetail
from tableflow.application.use_cases.list_issues import ListIssues
from tableflow.application.use_cases.resolve_issues import ResolveIssues
from tableflow.application.use_cases.runner_acknowledge import RunnerAcknowledge
from tableflow.application.use_cases.runner_queue import GetRunnerQueue
from tableflow.application.use_cases.station_queue import GetStationQueue
from tableflow.application.use_cases.table_summary import GetTableStatus
from tableflow.domain.common.ids import OrderCode, TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.issue.entities import OrderWideScope, ResolvedBy, StreamScope, TicketScope
from tableflow.domain.ticket.state import TicketStatus

from conftest import ADMIN, CUSTOMER, KITCHEN, RUNNER, deliver, place_order, ticket_id_for


def _event_types(publisher) -> list[str]:
    return [json.loads(message)["event_type"] for topic, message in publisher.messages if topic == "admin"]


def test_placement_creates_one_received_ticket_per_stream(store, publisher) -> None:
    order = place_order(store, publisher, streams=(Stream.FOOD, Stream.DRINKS))

    assert len(order.orderCode) == 6
    assert sorted(ticket.stream for ticket in order.tickets) == ["drinks", "food"]
    assert all(ticket.status == "received" for ticket in order.tickets)
    assert order.color == "orange"
    assert "station:food" in publisher.topics()
    assert f"order:{order.orderCode}" in publisher.topics()


def test_ticket_cannot_repeat_a_transition(store, publisher) -> None:
    order = place_order(store, publisher)
    ticket_id = ticket_id_for(order, Stream.FOOD)
    use_case = AdvanceTicket(store=store, publisher=publisher)

    use_case.execute(ticket_id=ticket_id, target_status=TicketStatus.PREPARING, ctx=KITCHEN)
    ready = use_case.execute(ticket_id=ticket_id, target_status=TicketStatus.READY, ctx=KITCHEN)
    assert ready.status == "ready"
    assert ready.readyAt is not None

    with pytest.raises(InvalidTransitionError) as exc_info:
        use_case.execute(ticket_id=ticket_id, target_status=TicketStatus.READY, ctx=KITCHEN)

    assert exc_info.value.details["from"] == "ready"
    assert store.get_ticket(ticket_id).status == TicketStatus.READY


def test_unknown_ticket_is_not_found(store, publisher) -> None:
    with pytest.raises(TicketNotFoundError):
        AdvanceTicket(store=store, publisher=publisher).execute(
            ticket_id=TicketId("tkt_missing"),
            target_status=TicketStatus.PREPARING,
            ctx=KITCHEN,
        )


def test_issue_before_delivery_is_too_early(store, publisher) -> None:
    order = place_order(store, publisher)
    ticket_id = ticket_id_for(order, Stream.FOOD)
    AdvanceTicket(store=store, publisher=publisher).execute(
        ticket_id=ticket_id,
        target_status=TicketStatus.PREPARING,
        ctx=KITCHEN,
    )

    with pytest.raises(IssueTooEarlyError):
        CreateIssue(store=store, publisher=publisher).execute(
            order_code=OrderCode(order.orderCode),
            scope=TicketScope(ticket_id=ticket_id),
            issue_type="cold",
            description="soup was cold",
            ctx=CUSTOMER,
        )

    detail = GetOrderDetail(store=store).execute(OrderCode(order.orderCode))
    assert detail.issues == []
    assert detail.resolutionRequired is False


def test_issue_type_must_match_stream_vocabulary(store, publisher) -> None:
    order = place_order(store, publisher)
    ticket_id = ticket_id_for(order, Stream.FOOD)
    deliver(store, publisher, ticket_id)

    with pytest.raises(InvalidIssueTypeError) as exc_info:
        CreateIssue(store=store, publisher=publisher).execute(
            order_code=OrderCode(order.orderCode),
            scope=TicketScope(ticket_id=ticket_id),
            issue_type="wrong_drink",
            description=None,
            ctx=CUSTOMER,
        )

    assert "wrong_food" in exc_info.value.details["allowed"]


def test_issue_ack_and_customer_fix_close_the_order(store, publisher) -> None:
    order = place_order(store, publisher, streams=(Stream.FOOD, Stream.DRINKS))
    code = OrderCode(order.orderCode)
    food_ticket = ticket_id_for(order, Stream.FOOD)
    drinks_ticket = ticket_id_for(order, Stream.DRINKS)
    deliver(store, publisher, food_ticket)

    confirmed = ConfirmDelivery(store=store, publisher=publisher).execute(order_code=code, ctx=CUSTOMER)
    assert confirmed.customerConfirmedAt is not None
    assert confirmed.closedAt is None
    assert confirmed.closeBlockers == ["TICKETS_NOT_DELIVERED"]

    issue = CreateIssue(store=store, publisher=publisher).execute(
        order_code=code,
        scope=TicketScope(ticket_id=food_ticket),
        issue_type="Cold ",
        description="soup was cold",
        ctx=CUSTOMER,
    )
    assert issue.status == "open"
    assert issue.type == "cold"
    assert store.get_order_by_code(code).resolution_required is True

    acknowledged = RunnerAcknowledge(store=store, publisher=publisher).execute(
        order_code=code,
        scope=TicketScope(ticket_id=food_ticket),
        ctx=RUNNER,
    )
    assert acknowledged.count == 1
    assert acknowledged.resolutionRequired is True
    detail = GetOrderDetail(store=store).execute(code)
    food = next(ticket for ticket in detail.tickets if ticket.stream == "food")
    assert detail.issues[0].status == "runner_ack"
    assert food.awaitingFixConfirmation is True

    deliver(store, publisher, drinks_ticket)
    assert store.get_order_by_code(code).closed_at is None

    resolved = ResolveIssues(store=store, publisher=publisher).execute(
        order_code=code,
        scope=TicketScope(ticket_id=food_ticket),
        resolved_by=ResolvedBy.CUSTOMER_CONFIRMATION,
        ctx=CUSTOMER,
    )
    assert resolved.count == 1
    assert resolved.resolutionRequired is False
    assert resolved.closedAt is not None
    assert resolved.closeBlockers == []

    events = _event_types(publisher)
    assert events.index("issues.resolved") < events.index("order.closed")
    assert "order.delivery_confirmed" in events


def test_confirmation_before_delivery_closes_on_last_delivery(store, publisher) -> None:
    order = place_order(store, publisher)
    code = OrderCode(order.orderCode)

    ConfirmDelivery(store=store, publisher=publisher).execute(order_code=code, ctx=CUSTOMER)
    assert store.get_order_by_code(code).closed_at is None

    deliver(store, publisher, ticket_id_for(order, Stream.FOOD))

    closed = store.get_order_by_code(code)
    assert closed.closed_at is not None
    assert "order.closed" in _event_types(publisher)


def test_delivery_alone_does_not_close(store, publisher) -> None:
    order = place_order(store, publisher)
    deliver(store, publisher, ticket_id_for(order, Stream.FOOD))

    detail = GetOrderDetail(store=store).execute(OrderCode(order.orderCode))
    assert detail.closedAt is None
    assert detail.needsCustomerConfirmation is True


def test_closed_order_rejects_new_issues(store, publisher) -> None:
    order = place_order(store, publisher)
    code = OrderCode(order.orderCode)
    ticket_id = ticket_id_for(order, Stream.FOOD)
    deliver(store, publisher, ticket_id)
    ConfirmDelivery(store=store, publisher=publisher).execute(order_code=code, ctx=CUSTOMER)

    with pytest.raises(OrderAlreadyClosedError):
        CreateIssue(store=store, publisher=publisher).execute(
            order_code=code,
            scope=TicketScope(ticket_id=ticket_id),
            issue_type="cold",
            description=None,
            ctx=CUSTOMER,
        )


def test_runner_ack_without_matching_issue_flags_the_order(store, publisher) -> None:
    order = place_order(store, publisher)
    code = OrderCode(order.orderCode)
    deliver(store, publisher, ticket_id_for(order, Stream.FOOD))

    result = RunnerAcknowledge(store=store, publisher=publisher).execute(
        order_code=code,
        scope=StreamScope(stream=Stream.FOOD),
        ctx=RUNNER,
    )

    assert result.count == 1
    assert result.resolutionRequired is True
    detail = GetOrderDetail(store=store).execute(code)
    assert [(issue.status, issue.type, issue.stream) for issue in detail.issues] == [
        ("runner_ack", "other", "food")
    ]
    assert detail.color == "red"


def test_stream_and_order_wide_scopes(store, publisher) -> None:
    order = place_order(store, publisher, streams=(Stream.FOOD, Stream.DRINKS))
    code = OrderCode(order.orderCode)
    deliver(store, publisher, ticket_id_for(order, Stream.FOOD))
    deliver(store, publisher, ticket_id_for(order, Stream.DRINKS))
    create = CreateIssue(store=store, publisher=publisher)

    create.execute(
        order_code=code,
        scope=StreamScope(stream=Stream.DRINKS),
        issue_type="wrong_drink",
        description=None,
        ctx=CUSTOMER,
    )
    create.execute(
        order_code=code,
        scope=OrderWideScope(),
        issue_type="hygiene",
        description="sticky table",
        ctx=CUSTOMER,
    )

    partial = ResolveIssues(store=store, publisher=publisher).execute(
        order_code=code,
        scope=StreamScope(stream=Stream.DRINKS),
        resolved_by=ResolvedBy.ADMIN,
        ctx=ADMIN,
        note="replaced drink",
    )
    assert partial.count == 1
    assert partial.resolutionRequired is True

    rest = ResolveIssues(store=store, publisher=publisher).execute(
        order_code=code,
        scope=OrderWideScope(),
        resolved_by=ResolvedBy.ADMIN,
        ctx=ADMIN,
    )
    assert rest.count == 1
    assert rest.resolutionRequired is False
    assert rest.closedAt is None

    resolved = ListIssues(store=store).execute(status="RESOLVED")
    assert {issue.resolvedBy for issue in resolved.issues} == {"admin"}
    assert "replaced drink" in {issue.resolutionNote for issue in resolved.issues}


def test_stream_scope_without_ticket_is_not_found(store, publisher) -> None:
    order = place_order(store, publisher, streams=(Stream.FOOD,))

    with pytest.raises(TicketNotFoundError):
        RunnerAcknowledge(store=store, publisher=publisher).execute(
            order_code=OrderCode(order.orderCode),
            scope=StreamScope(stream=Stream.DRINKS),
            ctx=RUNNER,
        )


def test_unknown_order_is_not_found(store, publisher) -> None:
    with pytest.raises(OrderNotFoundError):
        ConfirmDelivery(store=store, publisher=publisher).execute(
            order_code=OrderCode("ZZZZZZ"),
            ctx=CUSTOMER,
        )


def test_queues_and_table_status_follow_the_lifecycle(store, publisher) -> None:
    first = place_order(store, publisher, table_number=7)
    second = place_order(store, publisher, table_number=7, streams=(Stream.DRINKS,))

    food_queue = GetStationQueue(store=store).execute(Stream.FOOD)
    assert [ticket.orderCode for ticket in food_queue.tickets] == [first.orderCode]
    assert GetTableStatus(store=store).execute(7).color == "purple"

    advance = AdvanceTicket(store=store, publisher=publisher)
    drinks_ticket = ticket_id_for(second, Stream.DRINKS)
    advance.execute(ticket_id=drinks_ticket, target_status=TicketStatus.PREPARING, ctx=KITCHEN)
    advance.execute(ticket_id=drinks_ticket, target_status=TicketStatus.READY, ctx=KITCHEN)

    runner_rows = GetRunnerQueue(store=store).execute().rows
    assert [(row.kind, row.ticketId) for row in runner_rows] == [("deliver", drinks_ticket)]

    advance.execute(ticket_id=drinks_ticket, target_status=TicketStatus.DELIVERED, ctx=KITCHEN)
    RunnerAcknowledge(store=store, publisher=publisher).execute(
        order_code=OrderCode(second.orderCode),
        scope=OrderWideScope(),
        ctx=RUNNER,
    )

    runner_rows = GetRunnerQueue(store=store).execute().rows
    assert [row.kind for row in runner_rows] == ["issue"]
    table = GetTableStatus(store=store).execute(7)
    assert (table.color, table.label) == ("red", "Order issue")
    assert table.activeCount == 2


def test_confirm_fix_on_ticket_resolves_stream_acknowledgement(store, publisher) -> None:
    order = place_order(store, publisher)
    code = OrderCode(order.orderCode)
    food_ticket = ticket_id_for(order, Stream.FOOD)
    deliver(store, publisher, food_ticket)
    RunnerAcknowledge(store=store, publisher=publisher).execute(
        order_code=code,
        scope=StreamScope(stream=Stream.FOOD),
        ctx=RUNNER,
    )
    ConfirmDelivery(store=store, publisher=publisher).execute(order_code=code, ctx=CUSTOMER)

    detail = GetOrderDetail(store=store).execute(code)
    assert detail.tickets[0].awaitingFixConfirmation is True

    fixed = ResolveIssues(store=store, publisher=publisher).execute(
        order_code=code,
        scope=TicketScope(ticket_id=food_ticket),
        resolved_by=ResolvedBy.CUSTOMER_CONFIRMATION,
        ctx=CUSTOMER,
    )

    assert fixed.count == 1
    assert fixed.resolutionRequired is False
    assert fixed.closedAt is not None
