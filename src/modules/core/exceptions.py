"""Standard error envelope for every API response.

All errors, whether raised by DRF (authentication, validation,
throttling) or built by a view from a domain exception, share the shape::

    {"type": "validation_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}

Views may add top-level keys (e.g. ``payment_reference``) so the
customer always sees the reference support staff need.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


def _flatten(detail: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(detail, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in detail.items():
            nested = key if attr is None else f"{attr}.{key}"
            if key in ("non_field_errors", "detail"):
                nested = attr
            errors.extend(_flatten(value, nested))
        return errors
    if isinstance(detail, list):
        errors = []
        for index, value in enumerate(detail):
            nested = attr
            if isinstance(value, (dict, list)) and attr is not None:
                nested = f"{attr}.{index}"
            errors.extend(_flatten(value, nested))
        return errors
    return [
        {
            "code": getattr(detail, "code", "error"),
            "detail": str(detail),
            "attr": attr,
        }
    ]


def _error_type(exc: Exception) -> str:
    if isinstance(exc, exceptions.ValidationError):
        return "validation_error"
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return "authentication_error"
    if isinstance(exc, exceptions.PermissionDenied):
        return "permission_error"
    if isinstance(exc, exceptions.Throttled):
        return "throttled"
    return "client_error"


def standard_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """DRF ``EXCEPTION_HANDLER`` rendering the standard error envelope."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    response.data = {
        "type": _error_type(exc),
        "errors": _flatten(response.data),
    }
    logger.info(
        "api.error",
        error_type=response.data["type"],
        status_code=response.status_code,
    )
    return response


def error_response(
    detail: str,
    code: str,
    http_status: int = status.HTTP_400_BAD_REQUEST,
    error_type: str = "client_error",
    **extra: Any,
) -> Response:
    """Build a standard error response for a domain exception."""
    body: Dict[str, Any] = {
        "type": error_type,
        "errors": [{"code": code, "detail": detail, "attr": None}],
    }
    body.update(extra)
    return Response(body, status=http_status)


def validation_error_response(errors: Any, **extra: Any) -> Response:
    """Render serializer errors in the standard envelope with extra keys."""
    body: Dict[str, Any] = {"type": "validation_error", "errors": _flatten(errors)}
    body.update(extra)
    return Response(body, status=status.HTTP_400_BAD_REQUEST)
