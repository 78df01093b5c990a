from __future__ import annotations

from enum import Enum

from tableflow.domain.common.errors import InvalidTransitionError


class TicketStatus(str, Enum):
    """Preparation states of one stream of an order."""

    RECEIVED = "received"
    PREPARING = "preparing"
    READY = "ready"
    CANCELLED = "cancelled"
    DELIVERED = "delivered"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset({TicketStatus.CANCELLED, TicketStatus.COMPLETED})
TERMINAL_SUCCESS_STATUSES = frozenset({TicketStatus.DELIVERED, TicketStatus.COMPLETED})


class TicketStateMachine:
    """Validate ticket lifecycle transitions."""

    _TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
        TicketStatus.RECEIVED: frozenset({TicketStatus.PREPARING, TicketStatus.CANCELLED}),
        TicketStatus.PREPARING: frozenset({TicketStatus.READY, TicketStatus.CANCELLED}),
        TicketStatus.READY: frozenset({TicketStatus.DELIVERED, TicketStatus.CANCELLED}),
        TicketStatus.DELIVERED: frozenset({TicketStatus.COMPLETED}),
        TicketStatus.CANCELLED: frozenset(),
        TicketStatus.COMPLETED: frozenset(),
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.RECEIVED

    @classmethod
    def allowed_targets(cls, current: TicketStatus) -> frozenset[TicketStatus]:
        return cls._TRANSITIONS.get(current, frozenset())

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        return new in cls.allowed_targets(current)

    @classmethod
    def assert_transition(cls, current: TicketStatus, new: TicketStatus) -> None:
        if not cls.can_transition(current, new):
            raise InvalidTransitionError("ticket", current.value, new.value)
