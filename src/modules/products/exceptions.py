"""Product and stock domain exceptions.

Raised by the Service Layer when business rules are violated or when a
catalog write fails.  The API layer (Views) catches these and translates
them into appropriate HTTP responses.
"""

from __future__ import annotations


class ProductNotFound(Exception):
    """The requested product does not exist."""


class CatalogWriteFailed(Exception):
    """Persisting a catalog mutation (intake, creation) failed.

    Nothing was applied: stock and prices are written together or not at all.
    """


class StockAdjustmentFailed(Exception):
    """A stock increment/decrement could not be applied.

    Raised for an unknown product id or a failed write.
    """


class InsufficientStock(Exception):
    """A conditional decrement would have driven stock below zero."""

    def __init__(self, product_id: str, requested: int, available: int | None = None) -> None:
        self.product_id = product_id
        self.requested = requested
        self.available = available
        if available is None:
            message = f"Stock insuffisant pour le produit {product_id} ({requested} demandé)."
        else:
            message = (
                f"Stock insuffisant pour le produit {product_id} "
                f"({requested} demandé, {available} disponible)."
            )
        super().__init__(message)
