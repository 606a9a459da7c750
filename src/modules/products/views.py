"""Product API views.

Exposes ``ProductService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.mixins import ListModelMixin
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.products.dtos import ProductInputDTO
from modules.products.exceptions import CatalogWriteFailed, ProductNotFound
from modules.products.filters import ProductFilter
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.serializers import ProductIntakeSerializer, ProductSerializer
from modules.products.services import ProductService


class ProductViewSet(ListModelMixin, GenericViewSet):
    """ViewSet for the product catalog.

    Products are created and restocked through ``intake`` only; stock
    decreases come from the order lifecycle.
    """

    filterset_class = ProductFilter
    search_fields = ["name"]
    ordering_fields = ["name", "stock_quantity", "selling_price", "created_at"]
    ordering = ["name"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    serializer_class = ProductSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._repository = ProductDjangoRepository()
        self._service = ProductService(repository=self._repository)

    def get_queryset(self):
        return self._repository.queryset()

    # ------------------------------------------------------------------
    # Retrieve / look-up
    # ------------------------------------------------------------------

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/products/{pk}/"""
        if pk is None:
            return Response(
                {"detail": "Produit introuvable."},
                status=status.HTTP_404_NOT_FOUND,
            )
        try:
            product = self._service.get_product(pk)
        except ProductNotFound:
            return Response(
                {"detail": "Produit introuvable."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(ProductSerializer(product).data)

    @action(detail=False, methods=["get"], url_path="by-name")
    def by_name(self, request: Request) -> Response:
        """GET /api/v1/products/by-name/?name=Tomates"""
        name = request.query_params.get("name", "")
        if not name.strip():
            return Response(
                {"detail": "Le paramètre 'name' est requis."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        product = self._service.find_by_name(name)
        if product is None:
            return Response(
                {"detail": "Produit introuvable."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(ProductSerializer(product).data)

    # ------------------------------------------------------------------
    # Inventory intake
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"])
    def intake(self, request: Request) -> Response:
        """POST /api/v1/products/intake/

        Creates the product (201) or adds the quantity to the existing
        product with the same name (200).
        """
        serializer = ProductIntakeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            dto = ProductInputDTO(**serializer.validated_data)
        except (PydanticValidationError, ValueError) as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            result = self._service.upsert_by_name(dto)
        except CatalogWriteFailed as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        if result.is_new:
            message = (
                f"{dto.name} a été ajouté au stock avec {dto.stock_quantity} unités"
            )
            http_status = status.HTTP_201_CREATED
        else:
            message = (
                f"{dto.stock_quantity} unités ajoutées au stock de {result.product.name}"
            )
            http_status = status.HTTP_200_OK

        return Response(
            {
                "is_new": result.is_new,
                "message": message,
                "product": ProductSerializer(result.product).data,
            },
            status=http_status,
        )
