"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

Business checks (required fields, positive quantities, stock snapshot)
are deliberately *not* DTO validators: ``OrderService`` runs them all and
reports every failing field at once through ``ValidationFailed``.

- ``OrderItemDTO``: one line of an order (product, quantity, unit price).
- ``CreateOrderDTO``: input for order creation.
- ``UpdateOrderDTO``: input for a partial order update.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from modules.orders.constants import DEFAULT_PAYMENT_METHOD, DEFAULT_STATUS


class OrderItemDTO(BaseModel):
    """Immutable DTO for a single order line.

    ``product_id`` is ``None`` while no product has been picked.
    ``unit_price`` defaults to the product's selling price when omitted.
    """

    model_config = ConfigDict(frozen=True)

    product_id: Optional[UUID] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    ``order_number`` is generated when omitted (``None``); an explicit
    blank value is a validation error.
    """

    model_config = ConfigDict(frozen=True)

    order_number: Optional[str] = None
    status: Optional[str] = DEFAULT_STATUS.value
    payment_method: Optional[str] = DEFAULT_PAYMENT_METHOD.value
    items: List[OrderItemDTO] = Field(default_factory=list)


class UpdateOrderDTO(BaseModel):
    """Immutable DTO for partial order updates.

    Only supplied fields change.  Supplying ``items`` replaces the whole
    item set and reconciles stock for the difference.
    """

    model_config = ConfigDict(frozen=True)

    order_number: Optional[str] = None
    status: Optional[str] = None
    payment_method: Optional[str] = None
    items: Optional[List[OrderItemDTO]] = None
