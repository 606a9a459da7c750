"""Product DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.products.margins import product_margin
from modules.products.models import Product


class ProductIntakeSerializer(serializers.Serializer):
    """Validates an inventory intake (create-or-restock) payload."""

    name = serializers.CharField(max_length=255)
    stock_quantity = serializers.IntegerField(min_value=0)
    cost_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0.00")
    )
    selling_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0.00")
    )


class ProductSerializer(serializers.ModelSerializer):
    """Read serializer for products, with the derived margin."""

    margin_amount = serializers.SerializerMethodField()
    margin_percent = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "stock_quantity",
            "cost_price",
            "selling_price",
            "margin_amount",
            "margin_percent",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_margin_amount(self, obj: Product) -> str:
        return str(product_margin(obj).amount.quantize(Decimal("0.01")))

    def get_margin_percent(self, obj: Product) -> str:
        return str(product_margin(obj).percent.quantize(Decimal("0.1")))
