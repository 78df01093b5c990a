from __future__ import annotations

from tableflow.application.dto.responses import StationQueueResponse
from tableflow.application.mappers.order_mapper import to_ticket_response
from tableflow.application.metrics.order_lifecycle import record_station_queue_size
from tableflow.application.ports.repositories import LifecycleStore
from tableflow.domain.common.stream import Stream
from tableflow.domain.views.work_queues import STATION_STATUSES, TicketEntry, station_queue


class GetStationQueue:
    def __init__(self, store: LifecycleStore) -> None:
        self._store = store

    def execute(self, stream: Stream) -> StationQueueResponse:
        rows = self._store.list_tickets_with_orders(set(STATION_STATUSES), stream=stream)
        queue = station_queue((TicketEntry(ticket, order) for ticket, order in rows), stream)

        record_station_queue_size(stream=stream.value, size=len(queue))
        return StationQueueResponse(
            stream=stream.value,
            tickets=[to_ticket_response(entry.ticket, entry.order) for entry in queue],
        )
