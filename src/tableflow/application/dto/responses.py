from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class LineItemResponse(BaseModel):
    lineId: str
    name: str
    quantity: int
    unitPriceCents: int
    notes: str | None = None


class TicketResponse(BaseModel):
    ticketId: str
    orderCode: str
    tableNumber: int
    stream: str
    status: str
    createdAt: datetime
    readyAt: datetime | None = None
    deliveredAt: datetime | None = None
    items: list[LineItemResponse] = Field(default_factory=list)


class OrderTicketResponse(TicketResponse):
    hasIssue: bool = False
    awaitingFixConfirmation: bool = False


class IssueResponse(BaseModel):
    issueId: str
    orderCode: str
    tableNumber: int
    scope: str
    ticketId: str | None = None
    stream: str | None = None
    type: str
    description: str | None = None
    status: str
    createdAt: datetime
    resolvedAt: datetime | None = None
    resolvedBy: str | None = None
    resolutionNote: str | None = None


class IssueListResponse(BaseModel):
    issues: list[IssueResponse] = Field(default_factory=list)


class OrderSummaryResponse(BaseModel):
    orderCode: str
    tableNumber: int
    createdAt: datetime
    closedAt: datetime | None = None
    customerConfirmedAt: datetime | None = None
    resolutionRequired: bool
    color: str


class OrderDetailResponse(OrderSummaryResponse):
    needsCustomerConfirmation: bool
    tickets: list[OrderTicketResponse] = Field(default_factory=list)
    issues: list[IssueResponse] = Field(default_factory=list)


class OrderStateResponse(BaseModel):
    orderCode: str
    tableNumber: int
    customerConfirmedAt: datetime | None = None
    closedAt: datetime | None = None
    resolutionRequired: bool
    closeBlockers: list[str] = Field(default_factory=list)


class IssueBatchResponse(OrderStateResponse):
    count: int


class StationQueueResponse(BaseModel):
    stream: str
    tickets: list[TicketResponse] = Field(default_factory=list)


class RunnerQueueItemResponse(BaseModel):
    kind: str
    orderCode: str
    tableNumber: int
    stream: str | None = None
    ticketId: str | None = None
    ticketStatus: str | None = None
    readyAt: datetime | None = None
    issueId: str | None = None
    issueType: str | None = None
    issueStatus: str | None = None
    createdAt: datetime | None = None


class RunnerQueueResponse(BaseModel):
    rows: list[RunnerQueueItemResponse] = Field(default_factory=list)


class TableStatusResponse(BaseModel):
    tableNumber: int
    color: str
    label: str
    activeCount: int
    multiple: bool
    hasIssue: bool
    lookbackMins: int
    activeOrders: list[OrderSummaryResponse] = Field(default_factory=list)
    recentClosedOrders: list[OrderSummaryResponse] = Field(default_factory=list)


class TableGridResponse(BaseModel):
    tables: list[TableStatusResponse] = Field(default_factory=list)
