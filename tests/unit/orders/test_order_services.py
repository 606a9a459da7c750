"""Unit tests for OrderService.

Covers:
- Order creation: totals, stock decrements, default prices, numbering.
- Validation collecting every failing field before any write.
- Rollback of every step when a stock or order write fails.
- Partial updates, item replacement with stock reconciliation.
- Status-only updates.
- Deletion with stock restoration.
"""

from __future__ import annotations

from decimal import Decimal
from unittest import mock

import pytest
from django.db import DatabaseError

from modules.orders.constants import ORDER_NUMBER_MAX_RETRIES, OrderStatus
from modules.orders.dtos import CreateOrderDTO, OrderItemDTO, UpdateOrderDTO
from modules.orders.events import OrderCreated, OrderDeleted, OrderStatusChanged, OrderUpdated
from modules.orders.exceptions import OrderNotFound, OrderWriteFailed, ValidationFailed
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.exceptions import InsufficientStock, StockAdjustmentFailed
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import StockAdjustmentService

pytestmark = pytest.mark.unit

UNKNOWN_ID = "00000000-0000-0000-0000-000000000000"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_repo():
    return OrderDjangoRepository()


@pytest.fixture()
def product_repo():
    return ProductDjangoRepository()


@pytest.fixture()
def stock(product_repo):
    return StockAdjustmentService(product_repo)


@pytest.fixture()
def bus():
    return mock.Mock()


@pytest.fixture()
def service(order_repo, product_repo, stock, bus):
    return OrderService(
        order_repository=order_repo,
        product_repository=product_repo,
        stock_service=stock,
        event_bus=bus,
    )


@pytest.fixture()
def scenario_dto(bread, butter):
    return CreateOrderDTO(
        order_number="CMD-240101-007",
        items=[
            OrderItemDTO(product_id=bread.id, quantity=2, unit_price=Decimal("3.00")),
            OrderItemDTO(product_id=butter.id, quantity=1, unit_price=Decimal("5.00")),
        ],
    )


def _published(bus) -> list:
    events = []
    for call in bus.publish_all.call_args_list:
        events.extend(call.args[0])
    return events


def _stock(product: Product) -> int:
    product.refresh_from_db()
    return product.stock_quantity


# ===========================================================================
# create_order: happy path
# ===========================================================================


class TestCreateOrderSuccess:
    def test_scenario_total_and_stock(self, service, scenario_dto, bread, butter):
        order = service.create_order(scenario_dto)

        assert order.order_number == "CMD-240101-007"
        assert order.total_amount == Decimal("11.00")
        assert _stock(bread) == 8
        assert _stock(butter) == 4

    def test_items_are_persisted_with_snapshot_prices(self, service, scenario_dto, bread):
        order = service.create_order(scenario_dto)

        items = OrderItem.objects.filter(order_id=order.id).order_by("unit_price")
        assert [(i.quantity, i.unit_price) for i in items] == [
            (2, Decimal("3.00")),
            (1, Decimal("5.00")),
        ]

    def test_defaults_to_in_progress_and_card(self, service, scenario_dto):
        order = service.create_order(scenario_dto)
        assert order.status == OrderStatus.IN_PROGRESS
        assert order.payment_method == "carte"

    def test_unit_price_defaults_to_selling_price(self, service, bread):
        order = service.create_order(
            CreateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=3)])
        )
        assert order.total_amount == Decimal("9.00")
        assert order.items.get().unit_price == Decimal("3.00")

    def test_generates_order_number_when_omitted(self, service, bread):
        with mock.patch.object(
            Order, "generate_order_number", return_value="CMD-240101-042"
        ):
            order = service.create_order(
                CreateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=1)])
            )
        assert order.order_number == "CMD-240101-042"

    def test_generation_retries_past_existing_numbers(self, service, bread):
        Order.objects.create(order_number="CMD-240101-001")
        with mock.patch.object(
            Order,
            "generate_order_number",
            side_effect=["CMD-240101-001", "CMD-240101-002"],
        ):
            order = service.create_order(
                CreateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=1)])
            )
        assert order.order_number == "CMD-240101-002"

    def test_exact_decimal_total(self, service, bread):
        order = service.create_order(
            CreateOrderDTO(
                items=[
                    OrderItemDTO(product_id=bread.id, quantity=3, unit_price=Decimal("0.10")),
                ]
            )
        )
        assert order.total_amount == Decimal("0.30")

    def test_two_lines_of_same_product_decrement_cumulatively(self, service, bread):
        service.create_order(
            CreateOrderDTO(
                items=[
                    OrderItemDTO(product_id=bread.id, quantity=4),
                    OrderItemDTO(product_id=bread.id, quantity=6),
                ]
            )
        )
        assert _stock(bread) == 0

    def test_publishes_order_created(self, service, scenario_dto, bus):
        order = service.create_order(scenario_dto)

        events = _published(bus)
        assert len(events) == 1
        assert isinstance(events[0], OrderCreated)
        assert events[0].aggregate_id == order.id
        assert events[0].total_amount == Decimal("11.00")


# ===========================================================================
# create_order: validation
# ===========================================================================


class TestCreateOrderValidation:
    def _assert_nothing_written(self, bread):
        assert Order.objects.count() == 0
        assert OrderItem.objects.count() == 0
        assert _stock(bread) == 10

    def test_zero_quantity_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(
                CreateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=0)])
            )
        assert exc_info.value.errors["items.0.quantity"] == "La quantité doit être positive"
        self._assert_nothing_written(bread)

    def test_quantity_above_stock_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(
                CreateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=11)])
            )
        assert exc_info.value.errors["items.0.stock"] == "Stock insuffisant (10 disponible)"
        self._assert_nothing_written(bread)

    def test_cumulative_quantity_above_stock_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(
                CreateOrderDTO(
                    items=[
                        OrderItemDTO(product_id=bread.id, quantity=6),
                        OrderItemDTO(product_id=bread.id, quantity=5),
                    ]
                )
            )
        assert "items.1.stock" in exc_info.value.errors
        self._assert_nothing_written(bread)

    def test_item_without_product_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(CreateOrderDTO(items=[OrderItemDTO(quantity=1)]))
        assert exc_info.value.errors["items.0.product_id"] == "Veuillez sélectionner un produit"
        self._assert_nothing_written(bread)

    def test_unknown_product_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(
                CreateOrderDTO(items=[OrderItemDTO(product_id=UNKNOWN_ID, quantity=1)])
            )
        assert exc_info.value.errors["items.0.product_id"] == "Produit introuvable"
        self._assert_nothing_written(bread)

    def test_negative_unit_price_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(
                CreateOrderDTO(
                    items=[
                        OrderItemDTO(
                            product_id=bread.id, quantity=1, unit_price=Decimal("-1.00")
                        )
                    ]
                )
            )
        assert "items.0.unit_price" in exc_info.value.errors
        self._assert_nothing_written(bread)

    def test_sub_cent_unit_price_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(
                CreateOrderDTO(
                    items=[
                        OrderItemDTO(
                            product_id=bread.id, quantity=2, unit_price=Decimal("3.005")
                        )
                    ]
                )
            )
        assert exc_info.value.errors["items.0.unit_price"] == (
            "Le prix unitaire ne peut pas avoir plus de 2 décimales"
        )
        self._assert_nothing_written(bread)

    def test_trailing_zero_places_accepted(self, service, bread):
        order = service.create_order(
            CreateOrderDTO(
                items=[
                    OrderItemDTO(product_id=bread.id, quantity=2, unit_price=Decimal("3.000"))
                ]
            )
        )
        item = order.items.get()
        assert order.total_amount == item.quantity * item.unit_price == Decimal("6.00")

    def test_no_items_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(CreateOrderDTO(items=[]))
        assert exc_info.value.errors["items"] == "Au moins un article valide est requis"
        self._assert_nothing_written(bread)

    def test_blank_order_number_rejected(self, service, bread):
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(
                CreateOrderDTO(
                    order_number="   ",
                    items=[OrderItemDTO(product_id=bread.id, quantity=1)],
                )
            )
        assert exc_info.value.errors == {
            "order_number": "Le numéro de commande est requis"
        }
        self._assert_nothing_written(bread)

    def test_duplicate_order_number_rejected(self, service, bread):
        Order.objects.create(order_number="CMD-240101-007")
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(
                CreateOrderDTO(
                    order_number="CMD-240101-007",
                    items=[OrderItemDTO(product_id=bread.id, quantity=1)],
                )
            )
        assert "existe déjà" in exc_info.value.errors["order_number"]
        assert _stock(bread) == 10

    @pytest.mark.parametrize(
        "field, value, message",
        [
            ("status", "", "Le statut est requis"),
            ("payment_method", "", "La méthode de paiement est requise"),
        ],
    )
    def test_missing_status_or_payment_method_rejected(
        self, service, bread, field, value, message
    ):
        dto = CreateOrderDTO(
            items=[OrderItemDTO(product_id=bread.id, quantity=1)], **{field: value}
        )
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(dto)
        assert exc_info.value.errors[field] == message

    def test_unknown_status_rejected(self, service, bread):
        dto = CreateOrderDTO(
            status="annulée", items=[OrderItemDTO(product_id=bread.id, quantity=1)]
        )
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(dto)
        assert "status" in exc_info.value.errors

    def test_reports_every_failing_field(self, service, bread):
        dto = CreateOrderDTO(
            order_number="",
            status="",
            items=[OrderItemDTO(quantity=0)],
        )
        with pytest.raises(ValidationFailed) as exc_info:
            service.create_order(dto)

        assert set(exc_info.value.errors) == {
            "order_number",
            "status",
            "items.0.product_id",
            "items.0.quantity",
            "items",
        }

    def test_validation_failure_publishes_nothing(self, service, bus, bread):
        with pytest.raises(ValidationFailed):
            service.create_order(CreateOrderDTO(items=[]))
        bus.publish_all.assert_not_called()


# ===========================================================================
# create_order: rollback
# ===========================================================================


class TestCreateOrderRollback:
    def test_failed_second_decrement_rolls_back_everything(
        self, service, stock, scenario_dto, bread, butter, bus
    ):
        real_decrement = stock.decrement

        def flaky(product_id, quantity):
            if product_id == str(butter.id):
                raise InsufficientStock(product_id, quantity, 0)
            real_decrement(product_id, quantity)

        with mock.patch.object(stock, "decrement", side_effect=flaky):
            with pytest.raises(InsufficientStock):
                service.create_order(scenario_dto)

        assert Order.objects.count() == 0
        assert OrderItem.objects.count() == 0
        assert _stock(bread) == 10
        assert _stock(butter) == 5
        bus.publish_all.assert_not_called()

    def test_stale_stock_snapshot_is_caught_by_conditional_decrement(
        self, service, product_repo, bread
    ):
        # Validation sees 10 units; another sale has already taken 9.
        Product.objects.filter(id=bread.id).update(stock_quantity=1)
        stale = Product.objects.get(id=bread.id)
        stale.stock_quantity = 10

        with mock.patch.object(
            product_repo, "get_by_ids", return_value={str(bread.id): stale}
        ):
            with pytest.raises(InsufficientStock):
                service.create_order(
                    CreateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=5)])
                )

        assert Order.objects.count() == 0
        assert _stock(bread) == 1

    def test_stock_write_failure_rolls_back(self, service, stock, scenario_dto, bread):
        with mock.patch.object(
            stock, "decrement", side_effect=StockAdjustmentFailed("down")
        ):
            with pytest.raises(StockAdjustmentFailed):
                service.create_order(scenario_dto)
        assert Order.objects.count() == 0

    def test_database_error_raises_order_write_failed(
        self, service, order_repo, scenario_dto, bread
    ):
        with mock.patch.object(order_repo, "insert", side_effect=DatabaseError("boom")):
            with pytest.raises(OrderWriteFailed, match="boom"):
                service.create_order(scenario_dto)
        assert _stock(bread) == 10

    def test_exhausted_number_generation_raises(self, service, bread):
        Order.objects.create(order_number="CMD-240101-001")
        with mock.patch.object(
            Order, "generate_order_number", return_value="CMD-240101-001"
        ) as generate:
            with pytest.raises(OrderWriteFailed):
                service.create_order(
                    CreateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=1)])
                )
        assert generate.call_count == ORDER_NUMBER_MAX_RETRIES
        assert _stock(bread) == 10


# ===========================================================================
# update_order
# ===========================================================================


class TestUpdateOrder:
    def test_header_only_update_leaves_total_and_stock(
        self, service, scenario_dto, bread, butter
    ):
        order = service.create_order(scenario_dto)

        updated = service.update_order(
            order.id, UpdateOrderDTO(payment_method="espèces", status=OrderStatus.READY)
        )

        assert updated.payment_method == "espèces"
        assert updated.status == OrderStatus.READY
        assert updated.total_amount == Decimal("11.00")
        assert _stock(bread) == 8
        assert _stock(butter) == 4

    def test_replacing_items_reconciles_stock_and_total(
        self, service, scenario_dto, bread, butter
    ):
        order = service.create_order(scenario_dto)

        updated = service.update_order(
            order.id,
            UpdateOrderDTO(
                items=[OrderItemDTO(product_id=bread.id, quantity=5, unit_price=Decimal("3.00"))]
            ),
        )

        assert updated.total_amount == Decimal("15.00")
        assert [(i.product_id, i.quantity) for i in updated.items.all()] == [(bread.id, 5)]
        assert _stock(bread) == 5
        assert _stock(butter) == 5

    def test_new_items_may_use_quantities_being_returned(self, service, bread):
        order = service.create_order(
            CreateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=8)])
        )
        assert _stock(bread) == 2

        updated = service.update_order(
            order.id, UpdateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=10)])
        )

        assert updated.total_amount == Decimal("30.00")
        assert _stock(bread) == 0

    def test_invalid_items_change_nothing(self, service, scenario_dto, bread, butter):
        order = service.create_order(scenario_dto)

        with pytest.raises(ValidationFailed):
            service.update_order(
                order.id,
                UpdateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=50)]),
            )

        assert OrderItem.objects.filter(order_id=order.id).count() == 2
        assert _stock(bread) == 8
        assert _stock(butter) == 4

    def test_sub_cent_price_in_new_items_rejected(self, service, scenario_dto, bread):
        order = service.create_order(scenario_dto)

        with pytest.raises(ValidationFailed) as exc_info:
            service.update_order(
                order.id,
                UpdateOrderDTO(
                    items=[
                        OrderItemDTO(
                            product_id=bread.id, quantity=1, unit_price=Decimal("2.999")
                        )
                    ]
                ),
            )

        assert "items.0.unit_price" in exc_info.value.errors
        order.refresh_from_db()
        assert order.total_amount == Decimal("11.00")
        assert _stock(bread) == 8

    def test_renaming_to_own_number_is_allowed(self, service, scenario_dto):
        order = service.create_order(scenario_dto)
        updated = service.update_order(order.id, UpdateOrderDTO(order_number="CMD-240101-007"))
        assert updated.order_number == "CMD-240101-007"

    def test_renaming_to_taken_number_rejected(self, service, scenario_dto):
        Order.objects.create(order_number="CMD-240101-008")
        order = service.create_order(scenario_dto)
        with pytest.raises(ValidationFailed) as exc_info:
            service.update_order(order.id, UpdateOrderDTO(order_number="CMD-240101-008"))
        assert "order_number" in exc_info.value.errors

    def test_unknown_order_raises(self, service):
        with pytest.raises(OrderNotFound):
            service.update_order(UNKNOWN_ID, UpdateOrderDTO(status=OrderStatus.READY))

    def test_publishes_order_updated(self, service, scenario_dto, bread, bus):
        order = service.create_order(scenario_dto)
        bus.reset_mock()

        service.update_order(
            order.id, UpdateOrderDTO(items=[OrderItemDTO(product_id=bread.id, quantity=1)])
        )

        events = _published(bus)
        assert [type(e) for e in events] == [OrderUpdated]
        assert events[0].items_changed is True


# ===========================================================================
# update_status
# ===========================================================================


class TestUpdateStatus:
    def test_changes_only_status(self, service, scenario_dto, bread, butter):
        order = service.create_order(scenario_dto)

        updated = service.update_status(order.id, OrderStatus.DELIVERED)

        assert updated.status == OrderStatus.DELIVERED
        assert updated.total_amount == Decimal("11.00")
        assert _stock(bread) == 8
        assert _stock(butter) == 4

    def test_any_status_reachable_from_any_other(self, service, scenario_dto):
        order = service.create_order(scenario_dto)
        service.update_status(order.id, OrderStatus.DELIVERED)
        updated = service.update_status(order.id, OrderStatus.IN_PROGRESS)
        assert updated.status == OrderStatus.IN_PROGRESS

    def test_invalid_status_rejected(self, service, scenario_dto):
        order = service.create_order(scenario_dto)
        with pytest.raises(ValidationFailed):
            service.update_status(order.id, "annulée")

    def test_unknown_order_raises(self, service):
        with pytest.raises(OrderNotFound):
            service.update_status(UNKNOWN_ID, OrderStatus.READY)

    def test_publishes_status_changed(self, service, scenario_dto, bus):
        order = service.create_order(scenario_dto)
        bus.reset_mock()

        service.update_status(order.id, OrderStatus.READY)

        (event,) = _published(bus)
        assert isinstance(event, OrderStatusChanged)
        assert event.old_status == OrderStatus.IN_PROGRESS
        assert event.new_status == OrderStatus.READY


# ===========================================================================
# delete_order
# ===========================================================================


class TestDeleteOrder:
    def test_restores_stock_of_every_item(self, service, scenario_dto, bread, butter):
        order = service.create_order(scenario_dto)

        service.delete_order(order.id)

        assert not Order.objects.filter(id=order.id).exists()
        assert OrderItem.objects.count() == 0
        assert _stock(bread) == 10
        assert _stock(butter) == 5

    def test_second_delete_raises_not_found(self, service, scenario_dto):
        order = service.create_order(scenario_dto)
        service.delete_order(order.id)
        with pytest.raises(OrderNotFound):
            service.delete_order(order.id)

    def test_failed_restore_keeps_order(self, service, stock, scenario_dto, bread):
        order = service.create_order(scenario_dto)

        with mock.patch.object(
            stock, "increment", side_effect=StockAdjustmentFailed("down")
        ):
            with pytest.raises(StockAdjustmentFailed):
                service.delete_order(order.id)

        assert Order.objects.filter(id=order.id).exists()
        assert OrderItem.objects.filter(order_id=order.id).count() == 2
        assert _stock(bread) == 8

    def test_publishes_order_deleted(self, service, scenario_dto, bus):
        order = service.create_order(scenario_dto)
        bus.reset_mock()

        service.delete_order(order.id)

        (event,) = _published(bus)
        assert isinstance(event, OrderDeleted)
        assert event.aggregate_id == order.id


# ===========================================================================
# Queries
# ===========================================================================


class TestQueries:
    def test_get_order_raises_when_missing(self, service):
        with pytest.raises(OrderNotFound):
            service.get_order(UNKNOWN_ID)

    def test_get_items_joins_products(self, service, scenario_dto):
        order = service.create_order(scenario_dto)
        items = service.get_items(str(order.id))
        assert sorted(i.product.name for i in items) == ["Beurre", "Pain"]

    def test_get_items_of_unknown_order_raises(self, service):
        with pytest.raises(OrderNotFound):
            service.get_items(UNKNOWN_ID)

    def test_list_orders_filters(self, service, scenario_dto, bread):
        service.create_order(scenario_dto)
        ready = service.create_order(
            CreateOrderDTO(
                status=OrderStatus.READY,
                items=[OrderItemDTO(product_id=bread.id, quantity=1)],
            )
        )
        result = service.list_orders({"status": OrderStatus.READY})
        assert [o.id for o in result] == [ready.id]

    def test_list_products(self, service, bread, butter):
        assert [p.name for p in service.list_products()] == ["Beurre", "Pain"]
