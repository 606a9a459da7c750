"""Product repository interface.

Extends ``IRepository[Product]`` with the name look-ups used by inventory
intake and the relative stock updates used by the order lifecycle.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def get_by_ids(self, ids: Iterable[str]) -> Dict[str, Product]:
        """Retrieve several products at once, keyed by ``str(id)``."""

    @abstractmethod
    def get_by_name(self, name: str, for_update: bool = False) -> Optional[Product]:
        """Retrieve a product by case-insensitive name.

        With ``for_update`` the row is locked until the surrounding
        transaction ends.
        """

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List products ordered by name."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Product:
        """Insert a new product row."""

    @abstractmethod
    def update_fields(self, id: str, data: Dict[str, Any]) -> int:
        """Apply a single ``UPDATE`` with the given column values.

        Returns the number of rows updated.
        """

    @abstractmethod
    def decrement_stock(self, id: str, quantity: int) -> bool:
        """Subtract ``quantity`` only if enough stock remains.

        Returns ``False`` when no row matched (unknown id or short stock).
        """

    @abstractmethod
    def increment_stock(self, id: str, quantity: int) -> bool:
        """Add ``quantity`` to the stored stock.

        Returns ``False`` when the product does not exist.
        """
