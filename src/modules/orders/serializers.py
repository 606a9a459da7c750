"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.

Input serializers only check shapes and types; empty product picks,
non-positive quantities and stock shortfalls are reported by
``OrderService`` so that every failing field comes back at once.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order, OrderItem

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class OrderItemInputSerializer(serializers.Serializer):
    """Validates the shape of a single order line."""

    product_id = serializers.UUIDField(required=False, allow_null=True)
    quantity = serializers.IntegerField(required=False, allow_null=True)
    unit_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True
    )


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload.

    ``order_number`` is generated when omitted.
    """

    order_number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    status = serializers.CharField(
        required=False, allow_blank=True, default=OrderStatus.IN_PROGRESS.value
    )
    payment_method = serializers.CharField(
        required=False, allow_blank=True, default=PaymentMethod.CARD.value
    )
    items = OrderItemInputSerializer(many=True, required=False, default=list)


class UpdateOrderSerializer(serializers.Serializer):
    """Validates a partial order update; every field is optional."""

    order_number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    status = serializers.CharField(required=False)
    payment_method = serializers.CharField(required=False)
    items = OrderItemInputSerializer(many=True, required=False)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order items, joined with their product."""

    product_id = serializers.UUIDField(read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    product_stock = serializers.IntegerField(
        source="product.stock_quantity", read_only=True
    )
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "product_stock",
            "quantity",
            "unit_price",
            "line_total",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items."""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "payment_method",
            "total_amount",
            "created_at",
            "updated_at",
            "items",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "payment_method",
            "total_amount",
            "created_at",
        ]
        read_only_fields = fields
