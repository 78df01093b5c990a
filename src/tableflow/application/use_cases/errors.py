from __future__ import annotations

from tableflow.domain.common.errors import InvalidTransitionError

__all__ = [
    "InvalidIssueTypeError",
    "InvalidOrderError",
    "InvalidTransitionError",
    "IssueTooEarlyError",
    "LifecycleConflictError",
    "OrderAlreadyClosedError",
    "OrderNotFoundError",
    "TicketNotFoundError",
]


class OrderNotFoundError(Exception):
    pass


class TicketNotFoundError(Exception):
    pass


class IssueTooEarlyError(Exception):
    def __init__(self, message: str, ticket_status: str | None = None) -> None:
        super().__init__(message)
        self.details = {"ticketStatus": ticket_status} if ticket_status else {}


class InvalidIssueTypeError(Exception):
    def __init__(self, message: str, allowed: list[str]) -> None:
        super().__init__(message)
        self.details = {"allowed": allowed}


class InvalidOrderError(Exception):
    pass


class OrderAlreadyClosedError(Exception):
    pass


class LifecycleConflictError(Exception):
    def __init__(self, message: str, operation: str) -> None:
        super().__init__(message)
        self.operation = operation
        self.details = {"operation": operation}
