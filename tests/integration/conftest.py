from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy.engine import Engine

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from tableflow.application.dto.requests import PlaceOrderLineRequest, PlaceOrderRequest
from tableflow.application.dto.responses import OrderDetailResponse
from tableflow.application.use_cases.advance_ticket import AdvanceTicket
from tableflow.application.use_cases.context import RequestContext
from tableflow.application.use_cases.place_order import PlaceOrder
from tableflow.domain.common.ids import TicketId
from tableflow.domain.common.stream import Stream
from tableflow.domain.ticket.state import TicketStatus
from tableflow.infrastructure.db import session as db_session
from tableflow.infrastructure.db.models import issue as _issue_models  # noqa: F401
from tableflow.infrastructure.db.models import order as _order_models  # noqa: F401
from tableflow.infrastructure.db.models.base import Base
from tableflow.infrastructure.db.repositories.lifecycle_store import SqlAlchemyLifecycleStore
from tableflow.infrastructure.messaging import redis_client

CUSTOMER = RequestContext(trace_id=None, request_id="req-customer", actor="customer")
KITCHEN = RequestContext(trace_id=None, request_id="req-kitchen", actor="kitchen")
RUNNER = RequestContext(trace_id=None, request_id="req-runner", actor="runner")
ADMIN = RequestContext(trace_id=None, request_id="req-admin", actor="admin")

_LINES = {
    Stream.FOOD: ("Tomato soup", 650),
    Stream.DRINKS: ("Lemonade", 300),
}


class FakePublisher:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def publish(self, topic: str, message: str) -> None:
        self.messages.append((topic, message))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.messages]


@pytest.fixture
def engine(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Engine]:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'tableflow.db'}")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("APP_ENV", "test")
    db_session._build_engine.cache_clear()
    redis_client._build_client.cache_clear()

    engine = db_session.get_engine()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()
    db_session._build_engine.cache_clear()


@pytest.fixture
def store(engine: Engine) -> SqlAlchemyLifecycleStore:
    return SqlAlchemyLifecycleStore(engine)


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


def place_order(
    store: SqlAlchemyLifecycleStore,
    publisher: FakePublisher,
    table_number: int = 4,
    streams: tuple[Stream, ...] = (Stream.FOOD,),
) -> OrderDetailResponse:
    request_dto = PlaceOrderRequest(
        table_number=table_number,
        lines=[
            PlaceOrderLineRequest(
                name=_LINES[stream][0],
                quantity=1,
                unit_price_cents=_LINES[stream][1],
                stream=stream,
            )
            for stream in streams
        ],
    )
    return PlaceOrder(store=store, publisher=publisher).execute(request_dto=request_dto, ctx=CUSTOMER)


def ticket_id_for(order: OrderDetailResponse, stream: Stream) -> TicketId:
    return TicketId(next(ticket.ticketId for ticket in order.tickets if ticket.stream == stream.value))


def deliver(store: SqlAlchemyLifecycleStore, publisher: FakePublisher, ticket_id: TicketId) -> None:
    use_case = AdvanceTicket(store=store, publisher=publisher)
    for status in (TicketStatus.PREPARING, TicketStatus.READY, TicketStatus.DELIVERED):
        use_case.execute(ticket_id=ticket_id, target_status=status, ctx=KITCHEN)
