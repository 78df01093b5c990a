from __future__ import annotations

import logging
from datetime import datetime, timezone

from tableflow.application.dto.responses import OrderStateResponse
from tableflow.application.mappers.order_mapper import to_order_state_response
from tableflow.application.ports.publisher import EventPublisher
from tableflow.application.ports.repositories import LifecycleStore
from tableflow.application.use_cases.concurrency import run_with_retry
from tableflow.application.use_cases.context import RequestContext
from tableflow.application.use_cases.errors import OrderNotFoundError
from tableflow.application.use_cases.order_closing import (
    SettledOrder,
    announce_settlement,
    settle_order,
)
from tableflow.domain.common.ids import OrderCode

logger = logging.getLogger(__name__)


class ConfirmDelivery:
    """Record the customer's confirmation that the order arrived.

    Only the first confirmation is stamped. The order closes right away when
    every ticket is delivered and no issue is unresolved; otherwise it closes
    later, when the last of those conditions is met.
    """

    def __init__(self, store: LifecycleStore, publisher: EventPublisher) -> None:
        self._store = store
        self._publisher = publisher

    def execute(self, order_code: OrderCode, ctx: RequestContext) -> OrderStateResponse:
        now = datetime.now(timezone.utc)
        settled = run_with_retry("confirm_delivery", lambda: self._attempt(order_code, now))

        logger.info(
            "delivery_confirmed",
            extra={
                "order_code": str(settled.order.code),
                "first_confirmation": settled.confirmed_now,
                "closed": settled.order.is_closed,
            },
        )
        announce_settlement(self._publisher, settled, ctx, now)
        return to_order_state_response(settled.order, settled.tickets, settled.issues)

    def _attempt(self, order_code: OrderCode, now: datetime) -> SettledOrder:
        with self._store.transaction() as tx:
            order = tx.get_order_by_code(order_code)
            if order is None:
                raise OrderNotFoundError(f"order {order_code} not found")
            return settle_order(tx, order, now, confirm_delivery=True)
