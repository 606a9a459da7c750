"""Event handlers for Orders domain events."""

from __future__ import annotations

from typing import Union

import structlog

from modules.orders.events import (
    OrderCreated,
    OrderDeleted,
    OrderStatusChanged,
    OrderUpdated,
)
from modules.orders.margins import OrderMarginCalculator
from modules.orders.repositories.django_repository import OrderDjangoRepository
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "order.created_event_handled",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            total_amount=str(event.total_amount),
        )


OrderChangeEvent = Union[OrderUpdated, OrderStatusChanged, OrderDeleted]


class MarginInvalidationHandler(IEventHandler[OrderChangeEvent]):
    """Drops the memoized margin of any order whose items or row changed."""

    def __init__(self, calculator: OrderMarginCalculator | None = None) -> None:
        self._calculator = calculator or OrderMarginCalculator(OrderDjangoRepository())

    def handle(self, event: OrderChangeEvent) -> None:
        self._calculator.invalidate(str(event.aggregate_id))


order_created_handler = OrderCreatedHandler()
margin_invalidation_handler = MarginInvalidationHandler()
