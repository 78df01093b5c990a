from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from tableflow.domain.common.errors import InvalidTransitionError
from tableflow.domain.common.ids import IssueId, OrderId, TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.issue.entities import (
    ORDER_WIDE_ISSUE_TYPES,
    Issue,
    OrderWideScope,
    ResolvedBy,
    StreamScope,
    TicketScope,
    allowed_issue_types,
    awaiting_fix_confirmation,
    is_allowed_issue_type,
    resolve_scope,
)
from tableflow.domain.issue.state import IssueStateMachine, IssueStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _issue(scope=None, stream=Stream.FOOD, status=IssueStatus.OPEN, issue_id="iss_1") -> Issue:
    return Issue(
        issue_id=IssueId(issue_id),
        order_id=OrderId("ord_001"),
        scope=scope if scope is not None else TicketScope(TicketId("tkt_food")),
        stream=stream,
        issue_type="cold",
        status=status,
        created_at=NOW,
    )


def test_issue_transition_table() -> None:
    assert IssueStateMachine.can_transition(IssueStatus.OPEN, IssueStatus.RUNNER_ACK)
    assert IssueStateMachine.can_transition(IssueStatus.OPEN, IssueStatus.RESOLVED)
    assert IssueStateMachine.can_transition(IssueStatus.RUNNER_ACK, IssueStatus.RESOLVED)
    assert IssueStateMachine.can_transition(IssueStatus.CLIENT_ACK, IssueStatus.RESOLVED)
    assert not IssueStateMachine.can_transition(IssueStatus.RUNNER_ACK, IssueStatus.OPEN)
    assert not IssueStateMachine.can_transition(IssueStatus.RESOLVED, IssueStatus.OPEN)


def test_resolve_stamps_resolution_fields() -> None:
    resolved = _issue(status=IssueStatus.RUNNER_ACK).resolve(NOW, ResolvedBy.ADMIN, note="comped dessert")

    assert resolved.status == IssueStatus.RESOLVED
    assert resolved.resolved_at == NOW
    assert resolved.resolved_by == ResolvedBy.ADMIN
    assert resolved.resolution_note == "comped dessert"
    assert resolved.is_resolved


def test_resolved_issue_cannot_be_acknowledged() -> None:
    resolved = _issue().resolve(NOW, ResolvedBy.CUSTOMER_CONFIRMATION)
    with pytest.raises(InvalidTransitionError):
        resolved.acknowledge_by_runner()


def test_client_ack_still_counts_as_unresolved() -> None:
    assert not _issue(status=IssueStatus.CLIENT_ACK).is_resolved


def test_scope_resolution_prefers_ticket_then_stream() -> None:
    assert resolve_scope("tkt_1", Stream.FOOD) == TicketScope(TicketId("tkt_1"))
    assert resolve_scope(None, Stream.DRINKS) == StreamScope(Stream.DRINKS)
    assert resolve_scope("", None) == OrderWideScope()


def test_stream_scoped_issue_must_carry_its_stream() -> None:
    with pytest.raises(ValueError):
        _issue(scope=StreamScope(Stream.DRINKS), stream=Stream.FOOD)
    with pytest.raises(ValueError):
        _issue(scope=OrderWideScope(), stream=Stream.FOOD)


def test_covered_by_matches_scope_variants() -> None:
    ticket_issue = _issue()
    order_issue = _issue(scope=OrderWideScope(), stream=None)

    assert ticket_issue.covered_by(OrderWideScope())
    assert ticket_issue.covered_by(StreamScope(Stream.FOOD))
    assert not ticket_issue.covered_by(StreamScope(Stream.DRINKS))
    assert ticket_issue.covered_by(TicketScope(TicketId("tkt_food")))
    assert not ticket_issue.covered_by(TicketScope(TicketId("tkt_other")))
    assert not order_issue.covered_by(StreamScope(Stream.FOOD))


def test_ticket_scope_covers_wider_issues_touching_the_ticket() -> None:
    stream_issue = _issue(scope=StreamScope(Stream.FOOD))
    order_issue = _issue(scope=OrderWideScope(), stream=None)
    food_ticket = TicketScope(TicketId("tkt_food"))

    assert stream_issue.covered_by(food_ticket, ticket_stream=Stream.FOOD)
    assert not stream_issue.covered_by(food_ticket, ticket_stream=Stream.DRINKS)
    assert order_issue.covered_by(food_ticket, ticket_stream=Stream.FOOD)
    assert not _issue().covered_by(TicketScope(TicketId("tkt_other")), ticket_stream=Stream.FOOD)


def test_issue_type_vocabularies() -> None:
    assert is_allowed_issue_type("wrong_food", Stream.FOOD)
    assert not is_allowed_issue_type("wrong_food", Stream.DRINKS)
    assert is_allowed_issue_type("wrong_drink", None)
    assert allowed_issue_types(None) == ORDER_WIDE_ISSUE_TYPES
    assert "other" in allowed_issue_types(Stream.DRINKS)


def test_awaiting_fix_confirmation_follows_runner_ack() -> None:
    open_issue = _issue()
    acked = _issue(status=IssueStatus.RUNNER_ACK)
    order_wide_acked = _issue(scope=OrderWideScope(), stream=None, status=IssueStatus.RUNNER_ACK)

    assert not awaiting_fix_confirmation([open_issue], TicketId("tkt_food"), Stream.FOOD)
    assert awaiting_fix_confirmation([acked], TicketId("tkt_food"), Stream.FOOD)
    assert not awaiting_fix_confirmation([acked], TicketId("tkt_drinks"), Stream.DRINKS)
    assert awaiting_fix_confirmation([order_wide_acked], TicketId("tkt_drinks"), Stream.DRINKS)
