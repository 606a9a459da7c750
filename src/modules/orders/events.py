"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order and its items have been committed."""

    order_number: str = ""
    total_amount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class OrderUpdated(DomainEvent):
    """Raised when order fields (and possibly its items) change."""

    items_changed: bool = False


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when only the status of an order changes."""

    old_status: Optional[str] = None
    new_status: Optional[str] = None


@dataclass(frozen=True)
class OrderDeleted(DomainEvent):
    """Raised when an order is deleted and its stock restored."""
