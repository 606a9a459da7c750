"""Order and OrderItem models.

Rules implemented:
- ``order_number`` is unique and human-readable (``CMD-YYMMDD-NNN``).
- ``status`` starts at ``en cours``; any status may follow any other.
- ``total_amount`` is the sum of ``quantity * unit_price`` over the items,
  maintained by the service layer whenever items are set.
- OrderItem snapshots ``unit_price`` at order time; later catalog price
  edits never touch it.
- Deleting an order removes its items through the database cascade.
- Product FK uses PROTECT: a product referenced by an order cannot vanish.
"""

from __future__ import annotations

import secrets
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_STATUS,
    ORDER_NUMBER_PREFIX,
    OrderStatus,
    PaymentMethod,
)
from shared.domain.events import DomainEventMixin


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` is what staff read and type; the UUIDv7 ``id`` is
    used for every internal reference and API look-up.
    """

    order_number: models.CharField = models.CharField(max_length=20, unique=True)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=DEFAULT_STATUS,
    )
    payment_method: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=DEFAULT_PAYMENT_METHOD,
    )
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(total_amount__gte=0),
                name="orders_total_amount_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Build ``CMD-YYMMDD-NNN`` from today's date and a random suffix.

        Not unique by construction; callers check for an existing number.
        """
        today = timezone.localdate()
        suffix = secrets.randbelow(1000)
        return f"{ORDER_NUMBER_PREFIX}-{today:%y%m%d}-{suffix:03d}"

    # ------------------------------------------------------------------
    # Read normalisation
    # ------------------------------------------------------------------

    def normalize(self) -> Order:
        """Coerce legacy rows: unknown status -> ``en cours``, no total -> 0."""
        if self.status not in OrderStatus.values:
            self.status = DEFAULT_STATUS
        if self.total_amount is None:
            self.total_amount = Decimal("0.00")
        return self

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a Product.

    ``unit_price`` is a **snapshot** of the price at the time of the order.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.CheckConstraint(
                check=models.Q(unit_price__gte=0),
                name="order_items_unit_price_non_negative",
            ),
        ]

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def __str__(self) -> str:
        return f"{self.product_id} x{self.quantity} @ {self.unit_price}"
