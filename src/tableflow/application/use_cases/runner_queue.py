from __future__ import annotations

from tableflow.application.dto.responses import RunnerQueueItemResponse, RunnerQueueResponse
from tableflow.application.metrics.order_lifecycle import record_runner_queue_size
from tableflow.application.ports.repositories import LifecycleStore
from tableflow.domain.views.work_queues import (
    RUNNER_ISSUE_STATUSES,
    IssueEntry,
    RunnerQueueEntry,
    TicketEntry,
    runner_queue,
)


def _to_row(entry: RunnerQueueEntry) -> RunnerQueueItemResponse:
    if isinstance(entry, IssueEntry):
        issue = entry.issue
        return RunnerQueueItemResponse(
            kind="issue",
            orderCode=str(entry.order.code),
            tableNumber=entry.order.table_number,
            stream=issue.stream.value if issue.stream else None,
            ticketId=str(issue.ticket_id) if issue.ticket_id else None,
            issueId=str(issue.issue_id),
            issueType=issue.issue_type,
            issueStatus=issue.status.value,
            createdAt=issue.created_at,
        )
    ticket = entry.ticket
    return RunnerQueueItemResponse(
        kind="deliver",
        orderCode=str(entry.order.code),
        tableNumber=entry.order.table_number,
        stream=ticket.stream.value,
        ticketId=str(ticket.ticket_id),
        ticketStatus=ticket.status.value,
        readyAt=ticket.ready_at,
        createdAt=ticket.created_at,
    )


class GetRunnerQueue:
    def __init__(self, store: LifecycleStore) -> None:
        self._store = store

    def execute(self) -> RunnerQueueResponse:
        work = self._store.get_runner_work(set(RUNNER_ISSUE_STATUSES))
        queue = runner_queue(
            (IssueEntry(issue, order) for issue, order in work.issues),
            (TicketEntry(ticket, order) for ticket, order in work.deliveries),
        )

        issue_count = sum(1 for entry in queue if isinstance(entry, IssueEntry))
        record_runner_queue_size(kind="issue", size=issue_count)
        record_runner_queue_size(kind="deliver", size=len(queue) - issue_count)
        return RunnerQueueResponse(rows=[_to_row(entry) for entry in queue])
