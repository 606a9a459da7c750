"""Product DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``ProductInputDTO``: input for inventory intake (create-or-restock).
- ``UpsertResult``: outcome of an intake (new product or restock); a plain
  frozen dataclass since it carries a model instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from modules.products.models import Product


class ProductInputDTO(BaseModel):
    """Immutable DTO for inventory intake requests.

    Validates:
    - ``name`` is a non-empty string (stripped).
    - ``stock_quantity`` is non-negative.
    - ``cost_price`` and ``selling_price`` are non-negative.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    stock_quantity: int = 0
    cost_price: Decimal = Decimal("0.00")
    selling_price: Decimal = Decimal("0.00")

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Le nom du produit est requis.")
        return v.strip()

    @field_validator("stock_quantity")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("La quantité en stock ne peut pas être négative.")
        return v

    @field_validator("cost_price", "selling_price")
    @classmethod
    def price_must_be_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Le prix ne peut pas être négatif.")
        return v


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of ``ProductService.upsert_by_name``."""

    is_new: bool
    product: Product
