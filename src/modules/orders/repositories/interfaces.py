"""Order repository interface.

Extends ``IRepository[Order]`` with the operations the order lifecycle
composes: single-row inserts (no stock side effects), item reads joined
with their product, partial updates and the margin aggregation.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    Nothing here touches product stock; the service pairs these writes
    with ``StockAdjustmentService`` calls inside its own transaction.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with its items prefetched."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders, newest first, with status and total normalised."""

    @abstractmethod
    def get_items(self, order_id: str) -> List[OrderItem]:
        """Items of an order, each joined with its product for display."""

    @abstractmethod
    def insert(self, data: Dict[str, Any]) -> Order:
        """Insert a single order row (no items, no stock effect)."""

    @abstractmethod
    def add_item(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        unit_price: Decimal,
    ) -> OrderItem:
        """Insert a single order item row."""

    @abstractmethod
    def replace_items(
        self, order_id: str, items: Iterable[Tuple[str, int, Decimal]]
    ) -> List[OrderItem]:
        """Remove every item of an order and insert
        ``(product_id, quantity, unit_price)`` rows in their place."""

    @abstractmethod
    def update(self, id: str, data: Dict[str, Any]) -> Order:
        """Partially update ``status``, ``payment_method``, ``order_number``
        and/or ``total_amount``; returns the updated row.

        Totals are never recomputed here.
        """

    @abstractmethod
    def order_number_exists(self, order_number: str, exclude_id: Optional[str] = None) -> bool:
        """Whether another order already uses ``order_number``."""

    @abstractmethod
    def aggregate_margin(self, order_id: str) -> Decimal:
        """Sum of ``(unit_price - product.cost_price) * quantity`` over the items."""
