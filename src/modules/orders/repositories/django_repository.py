"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Methods here
are single-statement building blocks; the unit-of-work boundary
(``transaction.atomic``) belongs to ``OrderService``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.db.models import DecimalField, ExpressionWrapper, F, QuerySet, Sum

from modules.orders.exceptions import MarginQueryFailed, OrderNotFound
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = ("status", "payment_method", "order_number", "total_amount")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with its items and their products prefetched.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            order = (
                Order.objects.prefetch_related("items__product").filter(id=id).first()
            )
        except (ValueError, ValidationError):
            return None
        return order.normalize() if order else None

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def queryset(self) -> QuerySet[Order]:
        """Unevaluated queryset for API filter backends."""
        return Order.objects.all().order_by("-created_at", "-id")

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders newest first.

        Supported filter keys are plain ORM look-ups, e.g.::

            {"status": "prêt"}
            {"created_at__date": date(2024, 1, 1)}
        """
        queryset = self.queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return [order.normalize() for order in queryset]

    def get_items(self, order_id: str) -> List[OrderItem]:
        try:
            return list(
                OrderItem.objects.select_related("product")
                .filter(order_id=order_id)
                .order_by("created_at", "id")
            )
        except (ValueError, ValidationError):
            return []

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def insert(self, data: Dict[str, Any]) -> Order:
        """Insert the order row.

        ``data`` keys: ``order_number``, ``status``, ``payment_method`` and
        optionally ``total_amount``.
        """
        order = Order.objects.create(**data)
        logger.info(
            "order.inserted",
            order_id=str(order.id),
            order_number=order.order_number,
        )
        return order

    def add_item(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        unit_price: Decimal,
    ) -> OrderItem:
        return OrderItem.objects.create(
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
        )

    def replace_items(
        self, order_id: str, items: Iterable[Tuple[str, int, Decimal]]
    ) -> List[OrderItem]:
        removed, _ = OrderItem.objects.filter(order_id=order_id).delete()
        created = [
            self.add_item(order_id, product_id, quantity, unit_price)
            for product_id, quantity, unit_price in items
        ]
        logger.info(
            "order.items_replaced",
            order_id=str(order_id),
            removed=removed,
            added=len(created),
        )
        return created

    def update(self, id: str, data: Dict[str, Any]) -> Order:
        """Update whitelisted order fields under a row lock."""
        order = self.get_for_update(id)
        if not order:
            raise OrderNotFound(f"Commande {id} introuvable.")

        changed = []
        for field in UPDATABLE_FIELDS:
            if field in data and data[field] is not None:
                setattr(order, field, data[field])
                changed.append(field)

        if changed:
            order.save(update_fields=changed)
        logger.debug("order.fields_saved", order_id=str(id), fields=changed)
        return order

    def delete(self, id: str) -> bool:
        """Hard-delete an order; its items go with it (ON DELETE CASCADE)."""
        try:
            deleted, _ = Order.objects.filter(id=id).delete()
        except (ValueError, ValidationError):
            return False
        if deleted:
            logger.info("order.deleted", order_id=str(id))
        return bool(deleted)

    # ------------------------------------------------------------------
    # Order-specific queries
    # ------------------------------------------------------------------

    def order_number_exists(self, order_number: str, exclude_id: Optional[str] = None) -> bool:
        queryset = Order.objects.filter(order_number=order_number)
        if exclude_id is not None:
            queryset = queryset.exclude(id=exclude_id)
        return queryset.exists()

    def aggregate_margin(self, order_id: str) -> Decimal:
        contribution = ExpressionWrapper(
            (F("unit_price") - F("product__cost_price")) * F("quantity"),
            output_field=DecimalField(max_digits=14, decimal_places=2),
        )
        try:
            result = OrderItem.objects.filter(order_id=order_id).aggregate(
                margin=Sum(contribution)
            )
        except (ValueError, ValidationError, DatabaseError) as exc:
            raise MarginQueryFailed(
                f"Échec du calcul de la marge pour la commande {order_id}: {exc}"
            ) from exc
        return result["margin"] or Decimal("0.00")
