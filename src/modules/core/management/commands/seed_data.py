from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.dtos import CreateOrderDTO, OrderItemDTO
from modules.orders.exceptions import ValidationFailed
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.dtos import ProductInputDTO
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import ProductService

CATALOG = [
    ("Pain de campagne", 120, Decimal("0.80"), Decimal("3.00")),
    ("Beurre doux", 60, Decimal("1.90"), Decimal("5.00")),
    ("Tomates", 200, Decimal("0.40"), Decimal("1.20")),
    ("Mozzarella", 80, Decimal("1.50"), Decimal("4.50")),
    ("Steak haché", 90, Decimal("2.80"), Decimal("8.50")),
    ("Frites maison", 150, Decimal("0.60"), Decimal("3.50")),
    ("Salade verte", 70, Decimal("0.90"), Decimal("4.00")),
    ("Crème brûlée", 40, Decimal("1.10"), Decimal("6.00")),
    ("Café expresso", 300, Decimal("0.25"), Decimal("2.00")),
    ("Eau minérale", 250, Decimal("0.30"), Decimal("2.50")),
]


class Command(BaseCommand):
    help = "Seed database with realistic restaurant development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=30)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        products = self._seed_products()
        orders_created = self._seed_orders(products, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="staff").exists():
            User.objects.create_user("staff", password="staff123", is_staff=True)
            created += 1
        return created

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        service = ProductService(repository=ProductDjangoRepository())
        products: list[Product] = []
        for name, quantity, cost, selling in CATALOG:
            existing = service.find_by_name(name)
            if existing is not None:
                products.append(existing)
                continue
            result = service.upsert_by_name(
                ProductInputDTO(
                    name=name,
                    stock_quantity=quantity,
                    cost_price=cost,
                    selling_price=selling,
                )
            )
            products.append(result.product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(self, products: list[Product], count: int) -> int:
        self.stdout.write("Creating orders...")
        if not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no products)."))
            return 0

        service = OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
        )
        statuses = list(OrderStatus.values)
        payment_methods = list(PaymentMethod.values)

        orders_created = 0
        for _ in range(count):
            picked = random.sample(products, k=min(random.randint(1, 4), len(products)))
            dto = CreateOrderDTO(
                status=random.choice(statuses),
                payment_method=random.choice(payment_methods),
                items=[
                    OrderItemDTO(product_id=product.id, quantity=random.randint(1, 3))
                    for product in picked
                ],
            )
            try:
                service.create_order(dto)
            except ValidationFailed as exc:
                self.stdout.write(self.style.WARNING(f"Order skipped: {exc}"))
                continue
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
