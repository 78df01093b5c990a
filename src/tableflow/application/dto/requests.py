from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from tableflow.domain.common.stream import Stream
from tableflow.domain.ticket.state import TicketStatus


def _to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )


class PlaceOrderLineRequest(CamelBaseModel):
    name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(default=1, ge=1)
    unit_price_cents: int = Field(default=0, ge=0)
    stream: Stream
    notes: str | None = Field(default=None, max_length=1000)


class PlaceOrderRequest(CamelBaseModel):
    table_number: int = Field(ge=1)
    lines: list[PlaceOrderLineRequest] = Field(min_length=1)


class AdvanceTicketRequest(CamelBaseModel):
    status: TicketStatus


class IssueScopeRequest(CamelBaseModel):
    ticket_id: str | None = None
    stream: Stream | None = None


class CreateIssueRequest(IssueScopeRequest):
    issue_type: str = Field(default="other", alias="type", min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=1000)


class AdminResolveRequest(IssueScopeRequest):
    note: str | None = Field(default=None, max_length=1000)
