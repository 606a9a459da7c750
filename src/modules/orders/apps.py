from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import (
            OrderCreated,
            OrderDeleted,
            OrderStatusChanged,
            OrderUpdated,
        )
        from modules.orders.handlers import (
            margin_invalidation_handler,
            order_created_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderCreated, order_created_handler)
        event_bus.subscribe(OrderUpdated, margin_invalidation_handler)
        event_bus.subscribe(OrderStatusChanged, margin_invalidation_handler)
        event_bus.subscribe(OrderDeleted, margin_invalidation_handler)
