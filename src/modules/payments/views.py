"""Payment gateway webhook endpoint.

The gateway calls this route after it captures a payment.  When the
checkout client never created the order (browser closed, network
failure), the webhook creates it through reconciliation.  Responses
follow the gateway's retry contract: 2xx acknowledges the delivery,
5xx asks for a redelivery later.
"""

from __future__ import annotations

import structlog
from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.exceptions import error_response
from modules.orders.constants import OrderSource
from modules.orders.exceptions import OrderPersistenceFailed, ReconciliationFailed
from modules.orders.reconciliation import ReconciliationService
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.exceptions import (
    InvalidWebhookSignature,
    PaymentGatewayUnavailable,
)
from modules.payments.gateway import get_payment_gateway

logger = structlog.get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
PAYMENT_CANCELED = "payment_intent.canceled"


class StripeWebhookView(APIView):
    """POST /api/v1/payments/webhook/

    Authenticated by the ``Stripe-Signature`` header, not by a user.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes: list = []

    def post(self, request: Request) -> Response:
        signature = request.META.get("HTTP_STRIPE_SIGNATURE")
        if not signature:
            logger.warning("payment.webhook_unsigned")
            return error_response("Missing signature.", "missing_signature")

        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("payment.webhook_secret_missing")
            return error_response(
                "Webhook secret not configured.",
                "not_configured",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                error_type="server_error",
            )

        gateway = get_payment_gateway()
        try:
            event = gateway.parse_webhook_event(request.body, signature)
        except InvalidWebhookSignature:
            return error_response("Invalid signature.", "invalid_signature")

        log = logger.bind(
            event_id=event.event_id,
            event_type=event.event_type,
            payment_reference=event.payment_reference,
        )

        if event.event_type == PAYMENT_SUCCEEDED and event.payment_reference:
            resolver = ReconciliationService(
                order_service=OrderService(order_repository=OrderDjangoRepository()),
                payment_gateway=gateway,
            )
            try:
                order = resolver.reconcile(
                    event.payment_reference, source=OrderSource.WEBHOOK
                )
            except ReconciliationFailed as exc:
                # Redelivery cannot fix a missing record or missing metadata.
                log.error("payment.webhook_order_unrecoverable", error=str(exc))
                return Response({"received": True, "order_id": None})
            except (PaymentGatewayUnavailable, OrderPersistenceFailed) as exc:
                log.error("payment.webhook_retry_requested", error=str(exc))
                return error_response(
                    str(exc),
                    "temporarily_unavailable",
                    status.HTTP_503_SERVICE_UNAVAILABLE,
                    error_type="server_error",
                )
            log.info("payment.webhook_order_ensured", order_id=str(order.id))
            return Response({"received": True, "order_id": str(order.id)})

        if event.event_type in (PAYMENT_FAILED, PAYMENT_CANCELED):
            log.warning("payment.not_completed")
        else:
            log.info("payment.webhook_ignored")
        return Response({"received": True})
