"""Per-product margin, derived from the catalog prices.

``amount`` is ``selling_price - cost_price``; ``percent`` expresses that
amount relative to ``cost_price`` and is ``0`` when the cost is zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modules.products.models import Product

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ProductMargin:
    amount: Decimal
    percent: Decimal


def product_margin(product: Product) -> ProductMargin:
    cost = Decimal(product.cost_price or 0)
    selling = Decimal(product.selling_price or 0)
    amount = selling - cost
    percent = amount / cost * HUNDRED if cost > 0 else Decimal("0")
    return ProductMargin(amount=amount, percent=percent)
