from __future__ import annotations

from datetime import datetime, timedelta, timezone

from tableflow.application.dto.responses import TableStatusResponse
from tableflow.application.mappers.table_mapper import to_table_status_response
from tableflow.application.ports.repositories import LifecycleStore, TableOrdersData
from tableflow.domain.views.table_status import clamp_lookback_minutes


class InvalidTableNumberError(Exception):
    pass


class GetTableStatus:
    def __init__(self, store: LifecycleStore) -> None:
        self._store = store

    def execute(self, table_number: int, lookback_minutes: int | None = None) -> TableStatusResponse:
        if table_number < 1:
            raise InvalidTableNumberError("table number must be >= 1")

        lookback = clamp_lookback_minutes(lookback_minutes)
        closed_since = datetime.now(timezone.utc) - timedelta(minutes=lookback)
        by_table = self._store.list_orders_for_tables([table_number], closed_since=closed_since)
        data = by_table.get(table_number, TableOrdersData(active=[], recent_closed=[]))
        return to_table_status_response(table_number, data, lookback)
