from __future__ import annotations

from tableflow.application.dto.responses import TableStatusResponse
from tableflow.application.mappers.order_mapper import to_order_summary_response
from tableflow.application.ports.repositories import TableOrdersData
from tableflow.domain.views.table_status import table_status


def to_table_status_response(
    table_number: int,
    data: TableOrdersData,
    lookback_minutes: int,
) -> TableStatusResponse:
    view = table_status(data.active, data.recent_closed)
    return TableStatusResponse(
        tableNumber=table_number,
        color=view.color.value,
        label=view.label,
        activeCount=view.active_count,
        multiple=view.multiple,
        hasIssue=view.has_issue,
        lookbackMins=lookback_minutes,
        activeOrders=[to_order_summary_response(order) for order in data.active],
        recentClosedOrders=[to_order_summary_response(order) for order in data.recent_closed],
    )
