"""Order service layer (Use Cases).

Orchestrates order creation, update, status change and deletion as
multi-step sequences over the order repository and the stock adjustment
service.  Each write operation is one unit of work: the service opens the
``transaction.atomic`` block, so an order, its items and the matching stock
adjustments are committed together or not at all.

Rules enforced:
- Input is validated before any write; every failing field is reported.
- Unit prices carry at most two decimal places, as stored.
- ``total_amount`` is always ``Σ quantity * unit_price`` of the item set.
- Creating an order removes each item's quantity from its product's stock;
  the removal is conditional at the storage layer, so stock cannot go
  negative even when the validation snapshot was stale.
- Deleting an order returns each item's quantity to its product.
- Replacing the items of an existing order returns the old quantities and
  removes the new ones.
- A status change touches neither the total nor any stock.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional
from uuid import UUID

import structlog
from django.db import DatabaseError, transaction

from modules.orders.constants import ORDER_NUMBER_MAX_RETRIES, OrderStatus, PaymentMethod
from modules.orders.events import (
    OrderCreated,
    OrderDeleted,
    OrderStatusChanged,
    OrderUpdated,
)
from modules.orders.exceptions import OrderNotFound, OrderWriteFailed, ValidationFailed
from modules.orders.models import Order
from modules.products.services import StockAdjustmentService
from shared.infrastructure.bus import event_bus as default_event_bus

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO, OrderItemDTO, UpdateOrderDTO
    from modules.orders.models import OrderItem
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class OrderLine:
    """A validated order line, ready to be written."""

    product_id: str
    quantity: int
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price


def compute_total(lines: Iterable[OrderLine]) -> Decimal:
    """Exact decimal sum of ``quantity * unit_price``."""
    return sum((line.total for line in lines), Decimal("0.00"))


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection (DIP).  The stock
    service and the event bus default to the production ones.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        stock_service: Optional[StockAdjustmentService] = None,
        event_bus: Optional[IEventBus] = None,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._stock = stock_service or StockAdjustmentService(product_repository)
        self._bus = event_bus or default_event_bus

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Create an order, its items and the matching stock decrements.

        Steps:
        1. Validate header fields and items against a stock snapshot.
        2. In one transaction: insert the order row with its computed
           total, then for each item insert the row and decrement stock.
        3. Publish ``OrderCreated``.

        Raises:
            ValidationFailed: input rejected, nothing written.
            InsufficientStock: stock changed since validation; rolled back.
            StockAdjustmentFailed: a stock write failed; rolled back.
            OrderWriteFailed: an order/item write failed; rolled back.
        """
        log = logger.bind(order_number=dto.order_number, item_count=len(dto.items))
        log.info("order.creation_started")

        lines = self._validate_create(dto)
        order_number = (
            dto.order_number.strip()
            if dto.order_number is not None
            else self._next_order_number()
        )
        total = compute_total(lines)
        log = log.bind(order_number=order_number)

        try:
            with transaction.atomic():
                order = self._order_repo.insert(
                    {
                        "order_number": order_number,
                        "status": dto.status,
                        "payment_method": dto.payment_method,
                        "total_amount": total,
                    }
                )
                self._write_lines(str(order.id), lines)
        except DatabaseError as exc:
            log.error("order.creation_failed", error=str(exc))
            raise OrderWriteFailed(
                f"Échec de l'ajout de la commande: {exc}"
            ) from exc

        log.info("order.created", order_id=str(order.id), total_amount=str(total))
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_number=order.order_number,
                total_amount=total,
            )
        )
        self._bus.publish_all(order.pull_domain_events())
        return self._order_repo.get_by_id(str(order.id)) or order

    def update_order(self, order_id: UUID | str, dto: UpdateOrderDTO) -> Order:
        """Apply a partial update to an order.

        Without ``dto.items`` only order-level fields change: the total and
        every stock level are left as they are.  With ``dto.items`` the item
        set is replaced in one transaction: the current quantities go back
        to stock, the new ones are taken out, and the total is recomputed.

        Raises:
            OrderNotFound: the order does not exist.
            ValidationFailed: input rejected, nothing written.
            InsufficientStock / StockAdjustmentFailed / OrderWriteFailed:
                a write failed; everything rolled back.
        """
        order_id = str(order_id)
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Commande {order_id} introuvable.")

        log = logger.bind(order_id=order_id, order_number=order.order_number)

        errors: Dict[str, str] = {}
        fields = self._validate_header(dto, errors, exclude_id=order_id)
        lines: Optional[List[OrderLine]] = None
        if dto.items is not None:
            returned = _quantities_by_product(self._order_repo.get_items(order_id))
            lines = self._validate_items(dto.items, errors, returned)
        if errors:
            log.warning("order.validation_failed", fields=sorted(errors))
            raise ValidationFailed(errors)

        try:
            with transaction.atomic():
                if not self._order_repo.get_for_update(order_id):
                    raise OrderNotFound(f"Commande {order_id} introuvable.")
                if lines is not None:
                    self._restore_items(order_id)
                    self._order_repo.replace_items(
                        order_id,
                        [(ln.product_id, ln.quantity, ln.unit_price) for ln in lines],
                    )
                    for line in lines:
                        self._stock.decrement(line.product_id, line.quantity)
                    fields["total_amount"] = compute_total(lines)
                order = self._order_repo.update(order_id, fields)
        except DatabaseError as exc:
            log.error("order.update_failed", error=str(exc))
            raise OrderWriteFailed(f"Échec de la mise à jour: {exc}") from exc

        log.info("order.updated", fields=sorted(fields), items_changed=lines is not None)
        order.add_domain_event(
            OrderUpdated(aggregate_id=order.id, items_changed=lines is not None)
        )
        self._bus.publish_all(order.pull_domain_events())
        return self._order_repo.get_by_id(order_id) or order

    def update_status(self, order_id: UUID | str, new_status: str) -> Order:
        """Set only the status of an order; no total or stock effect.

        Raises:
            OrderNotFound: the order does not exist.
            ValidationFailed: ``new_status`` is not a known status.
        """
        order_id = str(order_id)
        if new_status not in OrderStatus.values:
            raise ValidationFailed({"status": f"Statut invalide: {new_status!r}"})

        try:
            with transaction.atomic():
                current = self._order_repo.get_for_update(order_id)
                if not current:
                    raise OrderNotFound(f"Commande {order_id} introuvable.")
                old_status = current.status
                order = self._order_repo.update(order_id, {"status": new_status})
        except DatabaseError as exc:
            logger.error("order.status_update_failed", order_id=order_id, error=str(exc))
            raise OrderWriteFailed(f"Échec de la mise à jour: {exc}") from exc

        logger.info(
            "order.status_updated",
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
        )
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id, old_status=old_status, new_status=new_status
            )
        )
        self._bus.publish_all(order.pull_domain_events())
        return self._order_repo.get_by_id(order_id) or order

    def delete_order(self, order_id: UUID | str) -> None:
        """Delete an order and return its item quantities to stock.

        Steps (one transaction): lock the order, read its items, delete the
        order (items cascade), increment each product by its item quantity.

        Raises:
            OrderNotFound: the order does not exist (or was already deleted).
            StockAdjustmentFailed / OrderWriteFailed: rolled back.
        """
        order_id = str(order_id)
        log = logger.bind(order_id=order_id)

        try:
            with transaction.atomic():
                order = self._order_repo.get_for_update(order_id)
                if not order:
                    raise OrderNotFound(f"Commande {order_id} introuvable.")
                items = self._order_repo.get_items(order_id)
                self._order_repo.delete(order_id)
                for item in items:
                    self._stock.increment(str(item.product_id), item.quantity)
        except DatabaseError as exc:
            log.error("order.deletion_failed", error=str(exc))
            raise OrderWriteFailed(f"Échec de la suppression: {exc}") from exc

        log.info("order.deleted", restored_items=len(items))
        order.add_domain_event(OrderDeleted(aggregate_id=order.id))
        self._bus.publish_all(order.pull_domain_events())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Commande {order_id} introuvable.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return orders newest first, optionally filtered."""
        return self._order_repo.list(filters)

    def get_items(self, order_id: str) -> List[OrderItem]:
        """Return the items of an order joined with their products.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        self.get_order(order_id)
        return self._order_repo.get_items(order_id)

    def list_products(self) -> List[Product]:
        """Products available for order lines, ordered by name."""
        return self._product_repo.list()

    # ------------------------------------------------------------------
    # Write helpers (run inside the caller's transaction)
    # ------------------------------------------------------------------

    def _write_lines(self, order_id: str, lines: List[OrderLine]) -> None:
        for line in lines:
            self._order_repo.add_item(
                order_id, line.product_id, line.quantity, line.unit_price
            )
            self._stock.decrement(line.product_id, line.quantity)

    def _restore_items(self, order_id: str) -> None:
        for item in self._order_repo.get_items(order_id):
            self._stock.increment(str(item.product_id), item.quantity)

    def _next_order_number(self) -> str:
        for _ in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = Order.generate_order_number()
            if not self._order_repo.order_number_exists(candidate):
                return candidate
        raise OrderWriteFailed(
            f"Impossible de générer un numéro de commande unique après "
            f"{ORDER_NUMBER_MAX_RETRIES} tentatives."
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_create(self, dto: CreateOrderDTO) -> List[OrderLine]:
        errors: Dict[str, str] = {}

        if dto.order_number is not None:
            self._check_order_number(dto.order_number, errors)
        if not dto.status:
            errors["status"] = "Le statut est requis"
        elif dto.status not in OrderStatus.values:
            errors["status"] = f"Statut invalide: {dto.status!r}"
        if not dto.payment_method:
            errors["payment_method"] = "La méthode de paiement est requise"
        elif dto.payment_method not in PaymentMethod.values:
            errors["payment_method"] = f"Méthode de paiement invalide: {dto.payment_method!r}"

        lines = self._validate_items(dto.items, errors)
        if errors:
            logger.warning("order.validation_failed", fields=sorted(errors))
            raise ValidationFailed(errors)
        return lines

    def _validate_header(
        self, dto: UpdateOrderDTO, errors: Dict[str, str], exclude_id: str
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if dto.order_number is not None:
            if self._check_order_number(dto.order_number, errors, exclude_id):
                fields["order_number"] = dto.order_number.strip()
        if dto.status is not None:
            if dto.status in OrderStatus.values:
                fields["status"] = dto.status
            else:
                errors["status"] = f"Statut invalide: {dto.status!r}"
        if dto.payment_method is not None:
            if dto.payment_method in PaymentMethod.values:
                fields["payment_method"] = dto.payment_method
            else:
                errors["payment_method"] = (
                    f"Méthode de paiement invalide: {dto.payment_method!r}"
                )
        return fields

    def _check_order_number(
        self, order_number: str, errors: Dict[str, str], exclude_id: Optional[str] = None
    ) -> bool:
        number = order_number.strip()
        if not number:
            errors["order_number"] = "Le numéro de commande est requis"
            return False
        if len(number) > Order._meta.get_field("order_number").max_length:
            errors["order_number"] = "Le numéro de commande est trop long"
            return False
        if self._order_repo.order_number_exists(number, exclude_id=exclude_id):
            errors["order_number"] = f"Le numéro de commande {number} existe déjà"
            return False
        return True

    def _validate_items(
        self,
        items: List[OrderItemDTO],
        errors: Dict[str, str],
        returned: Optional[Mapping[str, int]] = None,
    ) -> List[OrderLine]:
        """Check items against the current stock snapshot.

        ``returned`` holds quantities that go back to stock before the new
        items are taken out (the current items of an order being edited).
        Several lines of the same product are checked against its stock
        together.
        """
        returned = returned or {}
        products = self._product_repo.get_by_ids(
            str(item.product_id) for item in items if item.product_id
        )
        requested: Dict[str, int] = defaultdict(int)
        lines: List[OrderLine] = []
        has_item_errors = False

        for index, item in enumerate(items):
            prefix = f"items.{index}"
            product = None
            if item.product_id is None:
                errors[f"{prefix}.product_id"] = "Veuillez sélectionner un produit"
            else:
                product = products.get(str(item.product_id))
                if product is None:
                    errors[f"{prefix}.product_id"] = "Produit introuvable"

            if item.quantity is None or item.quantity <= 0:
                errors[f"{prefix}.quantity"] = "La quantité doit être positive"
                product = None
            price_error = _unit_price_error(item.unit_price)
            if price_error:
                errors[f"{prefix}.unit_price"] = price_error
                product = None

            if product is None:
                has_item_errors = True
                continue

            product_id = str(product.id)
            requested[product_id] += item.quantity
            available = product.stock_quantity + returned.get(product_id, 0)
            if requested[product_id] > available:
                errors[f"{prefix}.stock"] = f"Stock insuffisant ({available} disponible)"
                has_item_errors = True
                continue

            unit_price = (
                item.unit_price if item.unit_price is not None else product.selling_price
            )
            lines.append(
                OrderLine(
                    product_id=product_id,
                    quantity=item.quantity,
                    unit_price=Decimal(unit_price),
                )
            )

        if not items or has_item_errors:
            errors["items"] = "Au moins un article valide est requis"
        return lines


def _unit_price_error(price: Optional[Decimal]) -> Optional[str]:
    # OrderItem.unit_price holds two decimal places.
    if price is None:
        return None
    if not price.is_finite():
        return "Le prix unitaire est invalide"
    if price < 0:
        return "Le prix unitaire ne peut pas être négatif"
    if price != price.quantize(CENT):
        return "Le prix unitaire ne peut pas avoir plus de 2 décimales"
    return None

def _quantities_by_product(items: Iterable[OrderItem]) -> Dict[str, int]:
    quantities: Dict[str, int] = defaultdict(int)
    for item in items:
        quantities[str(item.product_id)] += item.quantity
    return dict(quantities)
