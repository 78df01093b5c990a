from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from tableflow.domain.order.entities import Order

DEFAULT_LOOKBACK_MINUTES = 120
MAX_LOOKBACK_MINUTES = 1440


class TableColor(str, Enum):
    WHITE = "white"
    ORANGE = "orange"
    GREEN = "green"
    RED = "red"
    PURPLE = "purple"


@dataclass(frozen=True)
class TableStatusView:
    color: TableColor
    label: str
    active_count: int
    has_issue: bool

    @property
    def multiple(self) -> bool:
        return self.active_count >= 2


def table_status(active: Sequence[Order], recent_closed: Sequence[Order] = ()) -> TableStatusView:
    """Derive the admin grid color for one table.

    ``active`` are the table's open orders, ``recent_closed`` the orders closed
    inside the lookback window. An unresolved issue on any active order wins
    over the multiple-orders color.
    """
    active_count = len(active)
    has_issue = any(order.resolution_required for order in active)

    if active_count == 0:
        if recent_closed:
            return TableStatusView(TableColor.GREEN, "Orders solved", 0, False)
        return TableStatusView(TableColor.WHITE, "No orders", 0, False)
    if has_issue:
        return TableStatusView(TableColor.RED, "Order issue", active_count, True)
    if active_count >= 2:
        return TableStatusView(TableColor.PURPLE, "Multiple orders", active_count, False)
    return TableStatusView(TableColor.ORANGE, "Order present", active_count, False)


def order_card_color(order: Order) -> TableColor:
    if order.closed_at is not None:
        return TableColor.GREEN
    if order.resolution_required:
        return TableColor.RED
    return TableColor.ORANGE


def clamp_lookback_minutes(value: int | None) -> int:
    if value is None:
        return DEFAULT_LOOKBACK_MINUTES
    return max(0, min(MAX_LOOKBACK_MINUTES, value))
