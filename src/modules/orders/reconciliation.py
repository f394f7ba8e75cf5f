"""Reconciliation resolver.

Heals the gap between "the gateway captured the payment" and "the order
exists": when a lookup by payment reference misses, the order is rebuilt
from the gateway's authoritative record and pushed through the normal
creation pipeline.  Nothing is fabricated: a missing record or missing
order metadata is an unrecoverable error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

import structlog
from pydantic import ValidationError

from modules.orders.constants import OrderSource
from modules.orders.dtos import CreateOrderDTO
from modules.orders.exceptions import (
    GatewayRecordMissing,
    MetadataIncomplete,
    OrderAlreadyExists,
    OrderNotFound,
)
from modules.payments.exceptions import PaymentRecordNotFound

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.services import OrderService
    from modules.payments.dtos import PaymentRecord
    from modules.payments.gateway import IPaymentGateway

logger = structlog.get_logger(__name__)


class ReconciliationService:
    """Rebuilds missing orders from the payment gateway."""

    def __init__(
        self,
        order_service: OrderService,
        payment_gateway: IPaymentGateway,
    ) -> None:
        self._order_service = order_service
        self._gateway = payment_gateway

    def reconcile(
        self,
        payment_reference: str,
        source: str = OrderSource.RECONCILIATION,
    ) -> Order:
        """Return the order of *payment_reference*, rebuilding it if missing.

        Safe to call repeatedly and concurrently: creation re-runs the
        idempotency check, and a lost race returns the winner's order.

        Raises:
            GatewayRecordMissing: no captured payment at the gateway.
            MetadataIncomplete: the record cannot describe a full order.
            PaymentGatewayUnavailable: the gateway could not be reached.
            OrderPersistenceFailed: the rebuilt order could not be stored.
        """
        log = logger.bind(payment_reference=payment_reference, source=str(source))
        log.info("order.reconciliation_started")

        try:
            existing = self._order_service.get_order_by_payment_reference(
                payment_reference
            )
        except OrderNotFound:
            pass
        else:
            log.info("order.reconciliation_not_needed", order_id=str(existing.id))
            return existing

        try:
            record = self._gateway.get_payment_record(payment_reference)
        except PaymentRecordNotFound as exc:
            log.warning("order.reconciliation_failed", reason="gateway_record_missing")
            raise GatewayRecordMissing(str(exc)) from exc

        dto = self._build_order(record, source)

        try:
            order = self._order_service.create_order(dto)
        except OrderAlreadyExists as exc:
            log.info("order.reconciliation_raced", order_id=str(exc.order.id))
            return exc.order

        log.info(
            "order.reconciled",
            order_id=str(order.id),
            total=str(order.total),
        )
        return order

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_order(self, record: PaymentRecord, source: str) -> CreateOrderDTO:
        metadata = record.metadata
        billing = record.billing
        missing: List[str] = []
        if not metadata.items:
            missing.append("items")
        if not billing.email:
            missing.append("email")
        if missing:
            logger.warning(
                "order.reconciliation_failed",
                payment_reference=record.payment_reference,
                reason="metadata_incomplete",
                missing=missing,
            )
            raise MetadataIncomplete(
                f"Payment {record.payment_reference} lacks {', '.join(missing)}."
            )

        address = billing.address
        street = " ".join(part for part in (address.line1, address.line2) if part)
        payload: Dict[str, Any] = {
            "payment_reference": record.payment_reference,
            "customer_info": {
                "email": billing.email,
                "name": billing.name,
                "address": {
                    "street": street,
                    "city": address.city,
                    "region": address.state,
                    "postal_code": address.postal_code,
                    "country": address.country,
                },
            },
            "items": metadata.items,
            "subtotal": metadata.subtotal or 0,
            "shipping": metadata.shipping or 0,
            "tax": metadata.tax or 0,
            "total": record.amount_captured,
            "currency": record.currency,
            "locale": metadata.locale,
            "source": source,
        }
        try:
            return CreateOrderDTO.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "order.reconciliation_failed",
                payment_reference=record.payment_reference,
                reason="metadata_invalid",
                error_count=exc.error_count(),
            )
            raise MetadataIncomplete(
                f"Payment {record.payment_reference} metadata is invalid."
            ) from exc
