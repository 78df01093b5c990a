from __future__ import annotations

from typing import NewType

OrderId = NewType("OrderId", str)
OrderCode = NewType("OrderCode", str)
TicketId = NewType("TicketId", str)
LineItemId = NewType("LineItemId", str)
IssueId = NewType("IssueId", str)
