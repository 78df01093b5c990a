from __future__ import annotations

from tableflow.application.dto.responses import IssueListResponse
from tableflow.application.mappers.order_mapper import to_issue_response
from tableflow.application.ports.repositories import LifecycleStore
from tableflow.domain.issue.state import UNRESOLVED_STATUSES, IssueStatus

_STATUS_MAP: dict[str, set[IssueStatus] | None] = {
    "ALL": None,
    "UNRESOLVED": set(UNRESOLVED_STATUSES),
    "OPEN": {IssueStatus.OPEN},
    "RUNNER_ACK": {IssueStatus.RUNNER_ACK},
    "CLIENT_ACK": {IssueStatus.CLIENT_ACK},
    "RESOLVED": {IssueStatus.RESOLVED},
}


class InvalidIssueStatusFilterError(Exception):
    pass


class ListIssues:
    def __init__(self, store: LifecycleStore) -> None:
        self._store = store

    def execute(self, status: str = "UNRESOLVED", limit: int = 100) -> IssueListResponse:
        normalized_status = status.upper()
        if normalized_status not in _STATUS_MAP:
            raise InvalidIssueStatusFilterError(f"invalid issue status filter: {status}")
        if limit < 1 or limit > 500:
            raise InvalidIssueStatusFilterError("limit must be between 1 and 500")

        rows = self._store.list_issues_with_orders(_STATUS_MAP[normalized_status])
        rows.sort(key=lambda row: (row[0].created_at, str(row[0].issue_id)), reverse=True)
        return IssueListResponse(issues=[to_issue_response(issue, order) for issue, order in rows[:limit]])
