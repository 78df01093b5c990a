from __future__ import annotations

from enum import Enum

from tableflow.domain.common.errors import InvalidTransitionError


class IssueStatus(str, Enum):
    OPEN = "open"
    RUNNER_ACK = "runner_ack"
    CLIENT_ACK = "client_ack"
    RESOLVED = "resolved"


# client_ack is kept for rows written by older clients; it blocks closing like runner_ack.
UNRESOLVED_STATUSES = frozenset(
    {IssueStatus.OPEN, IssueStatus.RUNNER_ACK, IssueStatus.CLIENT_ACK}
)


class IssueStateMachine:
    """Validate issue lifecycle transitions."""

    _TRANSITIONS: dict[IssueStatus, frozenset[IssueStatus]] = {
        IssueStatus.OPEN: frozenset({IssueStatus.RUNNER_ACK, IssueStatus.RESOLVED}),
        IssueStatus.RUNNER_ACK: frozenset({IssueStatus.RESOLVED}),
        IssueStatus.CLIENT_ACK: frozenset({IssueStatus.RESOLVED}),
        IssueStatus.RESOLVED: frozenset(),
    }

    @classmethod
    def initial_state(cls) -> IssueStatus:
        return IssueStatus.OPEN

    @classmethod
    def can_transition(cls, current: IssueStatus, new: IssueStatus) -> bool:
        return new in cls._TRANSITIONS.get(current, frozenset())

    @classmethod
    def assert_transition(cls, current: IssueStatus, new: IssueStatus) -> None:
        if not cls.can_transition(current, new):
            raise InvalidTransitionError("issue", current.value, new.value)
