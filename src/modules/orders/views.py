"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.
"""

from __future__ import annotations

from decimal import Decimal

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.orders.dtos import CreateOrderDTO, OrderItemDTO, UpdateOrderDTO
from modules.orders.exceptions import OrderNotFound, OrderWriteFailed, ValidationFailed
from modules.orders.filters import OrderFilter
from modules.orders.margins import OrderMarginCalculator
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CreateOrderSerializer,
    OrderItemSerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    UpdateOrderSerializer,
)
from modules.orders.services import OrderService
from modules.products.exceptions import InsufficientStock, StockAdjustmentFailed
from modules.products.repositories.django_repository import ProductDjangoRepository

ORDER_NOT_FOUND = "Commande introuvable."


def _domain_error(exc: Exception) -> Response:
    """Translate an order lifecycle exception into its HTTP response."""
    if isinstance(exc, ValidationFailed):
        return Response(
            {"detail": "Données de commande invalides.", "errors": exc.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )
    if isinstance(exc, OrderNotFound):
        return Response({"detail": ORDER_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, InsufficientStock):
        return Response(
            {
                "detail": str(exc),
                "product_id": exc.product_id,
                "requested": exc.requested,
                "available": exc.available,
            },
            status=status.HTTP_409_CONFLICT,
        )
    return Response(
        {"detail": str(exc)},
        status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


DOMAIN_ERRORS = (
    ValidationFailed,
    OrderNotFound,
    InsufficientStock,
    StockAdjustmentFailed,
    OrderWriteFailed,
)


def _items_from(data: list[dict]) -> list[OrderItemDTO]:
    return [
        OrderItemDTO(
            product_id=item.get("product_id"),
            quantity=item.get("quantity"),
            unit_price=item.get("unit_price"),
        )
        for item in data
    ]


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    filterset_class = OrderFilter
    search_fields = ["order_number"]
    ordering_fields = ["created_at", "total_amount", "status", "order_number"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    serializer_class = OrderSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._repository = OrderDjangoRepository()
        self._service = OrderService(
            order_repository=self._repository,
            product_repository=ProductDjangoRepository(),
        )
        self._margins = OrderMarginCalculator(self._repository)

    def get_queryset(self):
        return self._repository.queryset()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Inserts the order and its items and takes their quantities out of
        stock in one transaction.  Returns 201 with the created order.
        """
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            dto = CreateOrderDTO(
                order_number=data.get("order_number"),
                status=data.get("status"),
                payment_method=data.get("payment_method"),
                items=_items_from(data.get("items", [])),
            )
        except PydanticValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.create_order(dto)
        except DOMAIN_ERRORS as exc:
            return _domain_error(exc)

        return Response(
            {
                "message": f"La commande {order.order_number} a été créée avec succès.",
                "order": OrderSerializer(order).data,
            },
            status=status.HTTP_201_CREATED,
        )

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, payment method, date range, total range) is
        handled by ``OrderFilter`` via ``filter_backends``.  Ordering is
        handled by ``OrderingFilter``.  Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = OrderListSerializer(
            [order.normalize() for order in page], many=True
        )
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderNotFound as exc:
            return _domain_error(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Update / Delete
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        Only supplied fields change.  Supplying ``items`` replaces the item
        set, reconciles stock and recomputes the total.
        """
        serializer = UpdateOrderSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            dto = UpdateOrderDTO(
                order_number=data.get("order_number"),
                status=data.get("status"),
                payment_method=data.get("payment_method"),
                items=_items_from(data["items"]) if "items" in data else None,
            )
        except PydanticValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.update_order(pk, dto)
        except DOMAIN_ERRORS as exc:
            return _domain_error(exc)

        return Response(
            {
                "message": f"La commande {order.order_number} a été mise à jour.",
                "order": OrderSerializer(order).data,
            }
        )

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/

        Deletes the order and returns its item quantities to stock.
        """
        try:
            self._service.delete_order(pk)
        except DOMAIN_ERRORS as exc:
            return _domain_error(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Dedicated actions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/status/

        Sets only the status; total and stock are left untouched.
        """
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.update_status(pk, serializer.validated_data["status"])
        except DOMAIN_ERRORS as exc:
            return _domain_error(exc)

        return Response(
            {
                "message": f"Statut de la commande {order.order_number} mis à jour.",
                "order": OrderSerializer(order).data,
            }
        )

    @action(detail=True, methods=["get"])
    def items(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/items/"""
        try:
            items = self._service.get_items(pk)
        except OrderNotFound as exc:
            return _domain_error(exc)
        return Response(OrderItemSerializer(items, many=True).data)

    @action(detail=True, methods=["get"])
    def margin(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/margin/

        A failed margin query is reported as ``0.00``, never as an error.
        """
        try:
            order = self._service.get_order(pk)
        except OrderNotFound as exc:
            return _domain_error(exc)

        margin = self._margins.order_margin(str(order.id))
        return Response(
            {
                "order_id": str(order.id),
                "order_number": order.order_number,
                "margin": str(Decimal(margin).quantize(Decimal("0.01"))),
            }
        )
