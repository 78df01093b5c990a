from __future__ import annotations

from datetime import datetime, timedelta, timezone

from tableflow.application.dto.responses import TableGridResponse
from tableflow.application.mappers.table_mapper import to_table_status_response
from tableflow.application.ports.repositories import LifecycleStore, TableOrdersData
from tableflow.domain.views.table_status import clamp_lookback_minutes


class ListTableStatuses:
    """Color every table from 1 to ``max_tables`` for the admin grid."""

    def __init__(self, store: LifecycleStore, max_tables: int) -> None:
        self._store = store
        self._max_tables = max_tables

    def execute(self, lookback_minutes: int | None = None) -> TableGridResponse:
        lookback = clamp_lookback_minutes(lookback_minutes)
        closed_since = datetime.now(timezone.utc) - timedelta(minutes=lookback)
        table_numbers = list(range(1, self._max_tables + 1))
        by_table = self._store.list_orders_for_tables(table_numbers, closed_since=closed_since)

        empty = TableOrdersData(active=[], recent_closed=[])
        return TableGridResponse(
            tables=[
                to_table_status_response(number, by_table.get(number, empty), lookback)
                for number in table_numbers
            ]
        )
