from __future__ import annotations

from tableflow.application.dto.responses import OrderDetailResponse
from tableflow.application.mappers.order_mapper import to_order_detail_response
from tableflow.application.ports.repositories import LifecycleStore
from tableflow.application.use_cases.errors import OrderNotFoundError
from tableflow.domain.common.ids import OrderCode


class GetOrderDetail:
    def __init__(self, store: LifecycleStore) -> None:
        self._store = store

    def execute(self, order_code: OrderCode) -> OrderDetailResponse:
        snapshot = self._store.get_order_snapshot(order_code)
        if snapshot is None:
            raise OrderNotFoundError(f"order {order_code} not found")
        return to_order_detail_response(snapshot.order, snapshot.tickets, snapshot.issues)
