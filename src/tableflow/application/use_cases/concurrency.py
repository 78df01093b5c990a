from __future__ import annotations

import logging
from typing import Callable, TypeVar

from tableflow.application.metrics.order_lifecycle import record_conflict
from tableflow.application.ports.repositories import OptimisticConcurrencyError
from tableflow.application.use_cases.errors import LifecycleConflictError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2

T = TypeVar("T")


def run_with_retry(operation: str, attempt: Callable[[], T]) -> T:
    """Run one transactional attempt, retrying once with fresh state after a lost race."""
    for attempt_number in range(1, MAX_ATTEMPTS + 1):
        try:
            return attempt()
        except OptimisticConcurrencyError as exc:
            if attempt_number == MAX_ATTEMPTS:
                record_conflict(operation=operation, outcome="surfaced")
                logger.warning(
                    "lifecycle_conflict",
                    extra={"operation": operation, "attempt": attempt_number},
                )
                raise LifecycleConflictError(
                    f"{operation} lost a concurrent update twice; reload and try again",
                    operation=operation,
                ) from exc
            record_conflict(operation=operation, outcome="retried")
            logger.info(
                "lifecycle_conflict_retry",
                extra={"operation": operation, "attempt": attempt_number},
            )
    raise AssertionError("unreachable")
