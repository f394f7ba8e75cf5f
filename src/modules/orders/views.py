"""Order API views.

Exposes ``OrderService`` and ``ReconciliationService`` via HTTP using a
DRF ViewSet.  Domain exceptions are caught and translated into
appropriate HTTP status codes; the view never swallows generic
exceptions.

Customer-facing routes (create, retrieve, by-payment, reconcile) are
open to anonymous checkout clients and echo the payment reference on
every failure, since it is the key support staff recover orders with.
Listing, stats and status updates are staff-only.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as DTOValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, BasePermission, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import error_response, validation_error_response
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.constants import SUPPORT_MESSAGE, OrderSource
from modules.orders.dtos import CreateOrderDTO, UpdateOrderStatusDTO
from modules.orders.exceptions import (
    GatewayRecordMissing,
    InvalidTransition,
    MetadataIncomplete,
    OrderAlreadyExists,
    OrderNotFound,
    OrderPersistenceFailed,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.reconciliation import ReconciliationService
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.serializers import (
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    ReconcileOrderSerializer,
    UpdateOrderStatusSerializer,
)
from modules.orders.services import OrderService
from modules.payments.exceptions import PaymentGatewayUnavailable
from modules.payments.gateway import get_payment_gateway

PUBLIC_ACTIONS = frozenset({"create", "retrieve", "by_payment", "reconcile"})

THROTTLE_SCOPES: Dict[str, str] = {
    "create": "order_creation",
    "retrieve": "order_lookup",
    "by_payment": "order_lookup",
    "reconcile": "order_reconcile",
}


def _customer_failure(
    payment_reference: Optional[str],
    detail: str,
    code: str,
    http_status: int,
    error_type: str = "client_error",
) -> Response:
    extra: Dict[str, Any] = {"support_message": SUPPORT_MESSAGE}
    if payment_reference:
        extra["payment_reference"] = payment_reference
    return error_response(detail, code, http_status, error_type, **extra)


def _submitted_reference(request: Request) -> Optional[str]:
    data = request.data if hasattr(request.data, "get") else {}
    reference = data.get("payment_reference")
    return reference if isinstance(reference, str) and reference else None


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = [
        "order_number",
        "payment_reference",
        "customer_email",
        "customer_name",
    ]
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(order_repository=OrderDjangoRepository())

    def get_permissions(self) -> list[BasePermission]:
        if self.action in PUBLIC_ACTIONS:
            return [AllowAny()]
        return [IsAdminUser()]

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttling scopes, counted in the shared cache."""
        self.throttle_scope = THROTTLE_SCOPES.get(self.action)
        return super().get_throttles()

    def get_queryset(self):
        return self._service.list_orders()

    def _reconciliation(self) -> ReconciliationService:
        return ReconciliationService(
            order_service=self._service,
            payment_gateway=get_payment_gateway(),
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        The payment reference is the idempotency key.  Returns 201 for a
        new order and 200 with the existing order when one already
        exists for the reference (the submitted payload is ignored).
        """
        payment_reference = _submitted_reference(request)
        serializer = CreateOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(
                serializer.errors,
                payment_reference=payment_reference,
                support_message=SUPPORT_MESSAGE,
            )

        try:
            dto = CreateOrderDTO.model_validate(
                {**serializer.validated_data, "source": OrderSource.CHECKOUT}
            )
        except DTOValidationError as exc:
            return _customer_failure(
                payment_reference,
                str(exc.errors()[0]["msg"]),
                "invalid",
                status.HTTP_400_BAD_REQUEST,
                error_type="validation_error",
            )

        try:
            order = self._service.create_order(dto)
        except OrderAlreadyExists as exc:
            return Response(OrderSerializer(exc.order).data, status=status.HTTP_200_OK)
        except OrderPersistenceFailed as exc:
            return _customer_failure(
                dto.payment_reference,
                str(exc),
                "persistence_failed",
                status.HTTP_503_SERVICE_UNAVAILABLE,
                error_type="server_error",
            )

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, email, source, date range, total range) is
        handled by ``OrderFilter``; ordering by ``OrderingFilter``.
        Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(str(pk))
        except OrderNotFound:
            return error_response(
                "Order not found.", "order_not_found", status.HTTP_404_NOT_FOUND
            )
        return Response(OrderSerializer(order).data)

    @action(
        detail=False,
        methods=["get"],
        url_path=r"by-payment/(?P<payment_reference>[^/]+)",
    )
    def by_payment(self, request: Request, payment_reference: str) -> Response:
        """GET /api/v1/orders/by-payment/{payment_reference}/

        A 404 here is not final: the client may ``POST /reconcile/``.
        """
        try:
            order = self._service.get_order_by_payment_reference(payment_reference)
        except OrderNotFound:
            return _customer_failure(
                payment_reference,
                "No order exists yet for this payment.",
                "order_not_found",
                status.HTTP_404_NOT_FOUND,
            )
        return Response(OrderSerializer(order).data)

    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        """GET /api/v1/orders/stats/: order counts per status."""
        counts = self._service.count_by_status()
        return Response({"total": sum(counts.values()), "by_status": counts})

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"])
    def reconcile(self, request: Request) -> Response:
        """POST /api/v1/orders/reconcile/

        Returns the order of the payment, rebuilding it from the payment
        gateway when it was never created.
        """
        payment_reference = _submitted_reference(request)
        serializer = ReconcileOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(
                serializer.errors,
                payment_reference=payment_reference,
                support_message=SUPPORT_MESSAGE,
            )
        payment_reference = serializer.validated_data["payment_reference"]

        try:
            order = self._reconciliation().reconcile(payment_reference)
        except GatewayRecordMissing as exc:
            return _customer_failure(
                payment_reference,
                str(exc),
                "gateway_record_missing",
                status.HTTP_404_NOT_FOUND,
            )
        except MetadataIncomplete as exc:
            return _customer_failure(
                payment_reference,
                str(exc),
                "metadata_incomplete",
                status.HTTP_422_UNPROCESSABLE_ENTITY,
            )
        except (PaymentGatewayUnavailable, OrderPersistenceFailed) as exc:
            return _customer_failure(
                payment_reference,
                str(exc),
                "temporarily_unavailable",
                status.HTTP_503_SERVICE_UNAVAILABLE,
                error_type="server_error",
            )

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status Update
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        Moves the order along the state machine.  Requesting the current
        status returns the order unchanged and fires no side effects.
        """
        serializer = UpdateOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = UpdateOrderStatusDTO(**serializer.validated_data)

        try:
            order = self._service.update_status(str(pk), dto, user=request.user)
        except OrderNotFound:
            return error_response(
                "Order not found.", "order_not_found", status.HTTP_404_NOT_FOUND
            )
        except InvalidTransition as exc:
            return error_response(
                str(exc), "invalid_transition", status.HTTP_400_BAD_REQUEST
            )
        except OrderPersistenceFailed as exc:
            return error_response(
                str(exc),
                "persistence_failed",
                status.HTTP_503_SERVICE_UNAVAILABLE,
                error_type="server_error",
            )

        return Response(OrderSerializer(order).data)
