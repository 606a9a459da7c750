"""Product service layer (Use Cases).

Two application services share the ``IProductRepository``:

- ``ProductService``: the product catalog (look-ups and inventory intake).
- ``StockAdjustmentService``: relative stock increments/decrements used by
  the order lifecycle.

Rules enforced here:
- Intake of an existing name restocks it; prices change only when they differ.
- Intake writes stock and prices in one statement inside one transaction.
- A decrement never drives stock negative: the sufficiency check and the
  subtraction are the same conditional ``UPDATE``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from modules.products.dtos import UpsertResult
from modules.products.exceptions import (
    CatalogWriteFailed,
    InsufficientStock,
    ProductNotFound,
    StockAdjustmentFailed,
)

if TYPE_CHECKING:
    from modules.products.dtos import ProductInputDTO
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductService:
    """Application service for the product catalog.

    Receives an ``IProductRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def upsert_by_name(self, dto: ProductInputDTO) -> UpsertResult:
        """Create a product, or restock the one already carrying this name.

        For an existing product ``dto.stock_quantity`` is added to the
        current stock, and ``cost_price`` / ``selling_price`` are replaced
        only when they differ from the stored values.  The existing row is
        locked for the duration of the read-modify-write.

        Raises:
            CatalogWriteFailed: the write failed; nothing was applied.
        """
        log = logger.bind(name=dto.name, quantity=dto.stock_quantity)

        try:
            with transaction.atomic():
                existing = self._repo.get_by_name(dto.name, for_update=True)
                if existing is None:
                    product = self._repo.create(
                        {
                            "name": dto.name,
                            "stock_quantity": dto.stock_quantity,
                            "cost_price": dto.cost_price,
                            "selling_price": dto.selling_price,
                        }
                    )
                    log.info("product.intake_created", product_id=str(product.id))
                    return UpsertResult(is_new=True, product=product)

                product = self._restock(existing, dto)
        except DatabaseError as exc:
            log.error("product.intake_failed", error=str(exc))
            raise CatalogWriteFailed(
                f"Impossible d'ajouter le produit: {exc}"
            ) from exc

        log.info(
            "product.intake_updated",
            product_id=str(product.id),
            stock_quantity=product.stock_quantity,
        )
        return UpsertResult(is_new=False, product=product)

    def _restock(self, product: Product, dto: ProductInputDTO) -> Product:
        changes: Dict[str, Any] = {
            "stock_quantity": product.stock_quantity + dto.stock_quantity,
        }
        if dto.cost_price != product.cost_price:
            changes["cost_price"] = dto.cost_price
        if dto.selling_price != product.selling_price:
            changes["selling_price"] = dto.selling_price

        self._repo.update_fields(str(product.id), changes)
        for field, value in changes.items():
            setattr(product, field, value)
        return product

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_name(self, name: str) -> Optional[Product]:
        """Case-insensitive look-up; ``None`` when no product matches."""
        if not name or not name.strip():
            return None
        return self._repo.get_by_name(name)

    def list_all(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """Return every product ordered by name."""
        return self._repo.list(filters)

    def get_product(self, id: str) -> Product:
        """Retrieve a single product by ID.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(f"Produit {id} introuvable.")
        return product


class StockAdjustmentService:
    """Relative stock adjustments shared by intake and the order lifecycle."""

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    def decrement(self, product_id: str, quantity: int) -> None:
        """Remove ``quantity`` units from the product's stock.

        Raises:
            InsufficientStock: the stored stock is lower than ``quantity``.
            StockAdjustmentFailed: unknown product or failed write.
        """
        _check_quantity(quantity)
        log = logger.bind(product_id=str(product_id), quantity=quantity)

        applied = self._apply(self._repo.decrement_stock, product_id, quantity, log)
        if not applied:
            product = self._repo.get_by_id(str(product_id))
            if product is None:
                log.warning("stock.unknown_product")
                raise StockAdjustmentFailed(f"Produit {product_id} introuvable.")
            log.warning("stock.insufficient", available=product.stock_quantity)
            raise InsufficientStock(str(product_id), quantity, product.stock_quantity)

        log.info("stock.decremented")

    def increment(self, product_id: str, quantity: int) -> None:
        """Add ``quantity`` units back to the product's stock.

        Raises:
            StockAdjustmentFailed: unknown product or failed write.
        """
        _check_quantity(quantity)
        log = logger.bind(product_id=str(product_id), quantity=quantity)

        if not self._apply(self._repo.increment_stock, product_id, quantity, log):
            log.warning("stock.unknown_product")
            raise StockAdjustmentFailed(f"Produit {product_id} introuvable.")

        log.info("stock.incremented")

    @staticmethod
    def _apply(operation, product_id: str, quantity: int, log) -> bool:
        try:
            return operation(str(product_id), quantity)
        except (ValueError, ValidationError) as exc:
            log.warning("stock.invalid_product_id")
            raise StockAdjustmentFailed(f"Identifiant de produit invalide: {product_id}") from exc
        except DatabaseError as exc:
            log.error("stock.adjustment_failed", error=str(exc))
            raise StockAdjustmentFailed(
                f"Échec de la mise à jour du stock: {exc}"
            ) from exc


def _check_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError(f"Quantity must be a positive integer, got {quantity!r}.")
