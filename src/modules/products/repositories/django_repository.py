"""Django ORM implementation of the Product repository.

Satisfies ``IProductRepository`` using Django's QuerySet API.
Look-ups follow the Null Object pattern: they return ``None`` instead of
raising, and the Service Layer decides how to translate a missing entity.

Stock mutations are single relative ``UPDATE`` statements built from
``F("stock_quantity")``, never a read-modify-write of a client-held value,
so concurrent adjustments of the same product cannot lose updates.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import structlog

from django.core.exceptions import ValidationError
from django.db.models import F, QuerySet
from django.utils import timezone

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a product by primary key.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return Product.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_ids(self, ids: Iterable[str]) -> Dict[str, Product]:
        wanted = {str(i) for i in ids if i}
        if not wanted:
            return {}
        try:
            products = Product.objects.filter(id__in=wanted)
            return {str(product.id): product for product in products}
        except (ValueError, ValidationError):
            # One malformed id poisons the IN clause; fall back to per-id look-ups.
            found = {}
            for product_id in wanted:
                product = self.get_by_id(product_id)
                if product is not None:
                    found[product_id] = product
            return found

    def get_by_name(self, name: str, for_update: bool = False) -> Optional[Product]:
        queryset = Product.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.filter(name__iexact=name.strip()).first()

    def queryset(self) -> "QuerySet[Product]":
        """Unevaluated queryset for API filter backends."""
        return Product.objects.all().order_by("name")

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List products with optional Django ORM look-ups.

        Examples of valid filters::

            {"name__icontains": "pain"}
            {"stock_quantity__lte": 5}
        """
        queryset = Product.objects.all().order_by("name")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def create(self, data: Dict[str, Any]) -> Product:
        return Product.objects.create(**data)

    def update_fields(self, id: str, data: Dict[str, Any]) -> int:
        return Product.objects.filter(id=id).update(**data, updated_at=timezone.now())

    def delete(self, id: str) -> bool:
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        logger.info("product.deleted", product_id=str(id))
        return True

    # ------------------------------------------------------------------
    # Relative stock updates
    # ------------------------------------------------------------------

    def decrement_stock(self, id: str, quantity: int) -> bool:
        updated = Product.objects.filter(id=id, stock_quantity__gte=quantity).update(
            stock_quantity=F("stock_quantity") - quantity,
            updated_at=timezone.now(),
        )
        return updated == 1

    def increment_stock(self, id: str, quantity: int) -> bool:
        updated = Product.objects.filter(id=id).update(
            stock_quantity=F("stock_quantity") + quantity,
            updated_at=timezone.now(),
        )
        return updated == 1
