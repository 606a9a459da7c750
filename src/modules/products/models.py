"""Product model: catalog identity, stock level and pricing.

Rules implemented:
- Product names are unique regardless of case ("Tomates" == "tomates").
- Stock quantity cannot be negative (unsigned column + check constraint).
- Cost and selling prices cannot be negative.
- Stock is only ever mutated through relative updates issued by
  ``StockAdjustmentService`` or by inventory intake.
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models.functions import Lower

from modules.core.models import BaseModel

logger = structlog.get_logger(__name__)


class Product(BaseModel):
    """Product aggregate root.

    ``name`` is stripped on save; uniqueness is enforced case-insensitively
    by a functional unique constraint on ``LOWER(name)``.
    """

    name = models.CharField(max_length=255)
    stock_quantity = models.PositiveIntegerField(default=0)
    cost_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    selling_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                Lower("name"),
                name="products_name_ci_unique",
            ),
            models.CheckConstraint(
                check=models.Q(cost_price__gte=0),
                name="products_cost_price_non_negative",
            ),
            models.CheckConstraint(
                check=models.Q(selling_price__gte=0),
                name="products_selling_price_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.name:
            self.name = self.name.strip()
        if not self.name:
            raise ValidationError({"name": "Product name is required."})
        if self.stock_quantity is not None and self.stock_quantity < 0:
            raise ValidationError(
                {"stock_quantity": "Stock quantity cannot be negative."}
            )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.name:
            self.name = self.name.strip()
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product.created",
                product_id=str(self.id),
                name=self.name,
                stock_quantity=self.stock_quantity,
            )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.name} ({self.stock_quantity} en stock)"
