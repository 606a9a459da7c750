"""Order margin query with memoization.

The margin of an order is ``Σ (unit_price - product.cost_price) * quantity``
over its items, computed by the repository's aggregation.  Results are
memoized in the Django cache under ``orders:margin:<order_id>`` and dropped
by ``invalidate`` whenever the order is updated or deleted (see
``modules.orders.handlers``).

A failed query is logged and reported as ``0``; it is never cached and
never raised to the caller.  The cache itself is best effort: when it is
unreachable the margin is computed from the database and invalidation is
skipped.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import structlog
from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError

from modules.orders.exceptions import MarginQueryFailed

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

CACHE_KEY_PREFIX = "orders:margin"


def margin_cache_key(order_id: str) -> str:
    return f"{CACHE_KEY_PREFIX}:{order_id}"


def _log_cache_failure(operation: str, order_id: str, exc: Exception) -> None:
    logger.warning(
        "order.margin_cache_failed",
        operation=operation,
        order_id=str(order_id),
        error=str(exc),
    )


class OrderMarginCalculator:
    """Memoizing front for ``IOrderRepository.aggregate_margin``."""

    def __init__(self, order_repository: IOrderRepository, timeout: Optional[int] = None) -> None:
        self._order_repo = order_repository
        self._timeout = (
            timeout if timeout is not None else settings.ORDER_MARGIN_CACHE_TIMEOUT
        )

    def order_margin(self, order_id: str) -> Decimal:
        key = margin_cache_key(str(order_id))
        try:
            cached = cache.get(key)
        except Exception as exc:
            _log_cache_failure("get", order_id, exc)
            cached = None
        if cached is not None:
            return Decimal(cached)

        try:
            margin = self._order_repo.aggregate_margin(str(order_id))
        except (MarginQueryFailed, DatabaseError) as exc:
            logger.error(
                "order.margin_query_failed",
                order_id=str(order_id),
                error=str(exc),
            )
            return Decimal("0")

        # Stored as a string so every cache backend round-trips it exactly.
        try:
            cache.set(key, str(margin), self._timeout)
        except Exception as exc:
            _log_cache_failure("set", order_id, exc)
        return margin

    def invalidate(self, order_id: str) -> None:
        try:
            cache.delete(margin_cache_key(str(order_id)))
        except Exception as exc:
            _log_cache_failure("delete", order_id, exc)
            return
        logger.debug("order.margin_invalidated", order_id=str(order_id))
