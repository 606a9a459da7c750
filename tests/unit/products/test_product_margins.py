from __future__ import annotations

from decimal import Decimal

import pytest

from modules.products.margins import ProductMargin, product_margin
from modules.products.models import Product
from modules.products.serializers import ProductSerializer

pytestmark = pytest.mark.unit


def _product(cost: str, selling: str) -> Product:
    # Unsaved instance: the margin is pure and needs no database row.
    return Product(name="Pain", cost_price=Decimal(cost), selling_price=Decimal(selling))


class TestProductMargin:
    def test_amount_and_percent(self):
        assert product_margin(_product("10", "15")) == ProductMargin(
            amount=Decimal("5"), percent=Decimal("50")
        )

    def test_zero_cost_gives_zero_percent(self):
        margin = product_margin(_product("0", "15"))
        assert margin.amount == Decimal("15")
        assert margin.percent == Decimal("0")

    def test_negative_margin_when_selling_below_cost(self):
        margin = product_margin(_product("4.00", "3.00"))
        assert margin.amount == Decimal("-1.00")
        assert margin.percent == Decimal("-25")

    def test_exact_decimal_arithmetic(self):
        margin = product_margin(_product("0.10", "0.30"))
        assert margin.amount == Decimal("0.20")
        assert margin.percent == Decimal("200")


class TestProductSerializerMargin:
    def test_serialized_margin_is_rounded(self):
        data = ProductSerializer(_product("3.00", "4.00")).data
        assert data["margin_amount"] == "1.00"
        assert data["margin_percent"] == "33.3"
