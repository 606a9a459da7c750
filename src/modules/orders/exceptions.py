"""Order domain exceptions.

Raised by the Service Layer when business rules are violated or a
remote write fails.  The API layer (Views) catches these and translates
them into appropriate HTTP responses.

Stock-related failures (``InsufficientStock``, ``StockAdjustmentFailed``)
live in ``modules.products.exceptions`` and propagate through the order
service unchanged.
"""

from __future__ import annotations

from typing import Dict


class OrderNotFound(Exception):
    """The requested order does not exist (or was already deleted)."""


class ValidationFailed(Exception):
    """Order input was rejected before any write was attempted.

    ``errors`` maps a field path (``order_number``, ``items.0.quantity``)
    to a human-readable message.
    """

    def __init__(self, errors: Dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class OrderWriteFailed(Exception):
    """Persisting an order or one of its items failed."""


class MarginQueryFailed(Exception):
    """The margin aggregation for an order could not be computed."""
