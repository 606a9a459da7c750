"""Standardized error payloads for DRF-raised exceptions.

Every error produced by DRF itself (authentication, parsing, serializer
validation, 404 routing) is reshaped into::

    {"type": "validation_error" | "client_error" | "server_error",
     "errors": [{"code": ..., "detail": ..., "attr": ...}]}

Domain exceptions are translated by the views and never reach this handler.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


def standard_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    response = exception_handler(exc, context)
    if response is None:
        logger.error("api.unhandled_exception", error=str(exc), exc_info=exc)
        return None

    if isinstance(exc, ValidationError):
        error_type = "validation_error"
        errors = _flatten(exc.get_full_details())
    else:
        error_type = "client_error" if response.status_code < 500 else "server_error"
        detail = exc.detail if isinstance(exc, APIException) else str(exc)
        errors = [
            {
                "code": getattr(exc, "default_code", "error"),
                "detail": str(detail),
                "attr": None,
            }
        ]

    response.data = {"type": error_type, "errors": errors}
    return response


def _flatten(details: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    """Flatten DRF's nested ``get_full_details()`` into a list of errors."""
    if isinstance(details, dict) and "message" in details and "code" in details:
        return [{"code": details["code"], "detail": str(details["message"]), "attr": attr}]
    if isinstance(details, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in details.items():
            child = key if attr is None else f"{attr}.{key}"
            if key == "non_field_errors":
                child = attr
            errors.extend(_flatten(value, child))
        return errors
    if isinstance(details, list):
        errors = []
        for index, value in enumerate(details):
            child = attr
            if isinstance(value, dict) and not ("message" in value and "code" in value):
                child = f"{attr}.{index}" if attr is not None else str(index)
            errors.extend(_flatten(value, child))
        return errors
    return [{"code": "invalid", "detail": str(details), "attr": attr}]
