from __future__ import annotations

from fastapi import APIRouter, Request

from tableflow.api.request_context import request_context
from tableflow.application.dto.requests import AdvanceTicketRequest
from tableflow.application.dto.responses import StationQueueResponse, TicketResponse
from tableflow.application.use_cases.advance_ticket import AdvanceTicket
from tableflow.application.use_cases.station_queue import GetStationQueue
from tableflow.domain.common.ids import TicketId
from tableflow.domain.common.stream import Stream
from tableflow.infrastructure.db.repositories.lifecycle_store import SqlAlchemyLifecycleStore
from tableflow.infrastructure.messaging.redis_publisher import RedisEventPublisher

router = APIRouter()


def _advance_ticket_use_case() -> AdvanceTicket:
    return AdvanceTicket(store=SqlAlchemyLifecycleStore(), publisher=RedisEventPublisher())


def _station_queue_use_case() -> GetStationQueue:
    return GetStationQueue(store=SqlAlchemyLifecycleStore())


@router.get("/v1/stations/{stream}/queue", response_model=StationQueueResponse)
def station_queue(stream: Stream) -> StationQueueResponse:
    return _station_queue_use_case().execute(stream=stream)


@router.post("/v1/tickets/{ticket_id}/status", response_model=TicketResponse)
def advance_ticket(ticket_id: str, request_dto: AdvanceTicketRequest, request: Request) -> TicketResponse:
    return _advance_ticket_use_case().execute(
        ticket_id=TicketId(ticket_id),
        target_status=request_dto.status,
        ctx=request_context(request),
    )
