"""Payment gateway port and its Stripe adapter.

The order engine only *reads* from the gateway: it fetches the
authoritative record of a captured payment (amount, currency, the
order-shape metadata attached at charge time and the billing details)
and verifies webhook signatures.  Authorization and capture belong to
the checkout flow and are out of scope here.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Dict, List, Optional

import stripe
import structlog
from django.conf import settings

from modules.payments.dtos import (
    BillingAddress,
    BillingDetails,
    PaymentMetadata,
    PaymentRecord,
    WebhookEvent,
)
from modules.payments.exceptions import (
    InvalidWebhookSignature,
    PaymentGatewayUnavailable,
    PaymentRecordNotFound,
)

logger = structlog.get_logger(__name__)

# Stripe amounts are in minor units except for these currencies.
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
        "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
    }
)

CAPTURED_STATUS = "succeeded"


class IPaymentGateway(ABC):
    """Read-only contract of the payment gateway."""

    @abstractmethod
    def get_payment_record(self, payment_reference: str) -> PaymentRecord:
        """Fetch the captured payment identified by *payment_reference*.

        Raises:
            PaymentRecordNotFound: no captured payment with that reference.
            PaymentGatewayUnavailable: the gateway could not answer.
        """

    @abstractmethod
    def parse_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify and decode a webhook delivery.

        Raises:
            InvalidWebhookSignature: signature or payload is invalid.
        """


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read *name* from a StripeObject, a plain dict or any attribute holder."""
    if obj is None:
        return default
    try:
        value = obj[name]
    except (KeyError, TypeError, IndexError):
        value = getattr(obj, name, default)
    return default if value is None else value


def _to_major_units(amount: int, currency: str) -> Decimal:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"))


def _decimal_or_none(raw: Any) -> Optional[Decimal]:
    if raw in (None, ""):
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        return None


def _parse_items(raw: Any) -> List[Dict[str, Any]]:
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, dict)]
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("payment.metadata_items_unparseable")
        return []
    if not isinstance(decoded, list):
        return []
    return [item for item in decoded if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# Stripe adapter
# ---------------------------------------------------------------------------


class StripePaymentGateway(IPaymentGateway):
    """``IPaymentGateway`` backed by Stripe PaymentIntents.

    ``client`` defaults to the ``stripe`` module; tests inject a fake
    exposing ``PaymentIntent.retrieve`` and ``Webhook.construct_event``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        client: Any = stripe,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self._webhook_secret = (
            webhook_secret
            if webhook_secret is not None
            else settings.STRIPE_WEBHOOK_SECRET
        )
        self._client = client

    def get_payment_record(self, payment_reference: str) -> PaymentRecord:
        log = logger.bind(payment_reference=payment_reference)
        try:
            intent = self._client.PaymentIntent.retrieve(
                payment_reference,
                api_key=self._api_key,
                expand=["latest_charge"],
            )
        except stripe.InvalidRequestError as exc:
            if getattr(exc, "code", None) == "resource_missing":
                log.warning("payment.record_missing")
                raise PaymentRecordNotFound(
                    f"Payment {payment_reference} not found at the gateway."
                ) from exc
            log.error("payment.gateway_rejected_request", error=str(exc))
            raise PaymentGatewayUnavailable(str(exc)) from exc
        except stripe.StripeError as exc:
            log.error("payment.gateway_unavailable", error=str(exc))
            raise PaymentGatewayUnavailable(str(exc)) from exc

        status = _field(intent, "status", "")
        if status != CAPTURED_STATUS:
            log.warning("payment.not_captured", status=status)
            raise PaymentRecordNotFound(
                f"Payment {payment_reference} is {status or 'unknown'}, not captured."
            )

        currency = str(_field(intent, "currency", "")).lower()
        amount = _field(intent, "amount_received") or _field(intent, "amount", 0)
        raw_metadata = _field(intent, "metadata", {})

        record = PaymentRecord(
            payment_reference=payment_reference,
            amount_captured=_to_major_units(int(amount), currency),
            currency=currency,
            metadata=PaymentMetadata(
                items=_parse_items(_field(raw_metadata, "items")),
                subtotal=_decimal_or_none(_field(raw_metadata, "subtotal")),
                shipping=_decimal_or_none(_field(raw_metadata, "shipping")),
                tax=_decimal_or_none(_field(raw_metadata, "tax")),
                locale=_field(raw_metadata, "locale"),
            ),
            billing=self._billing_details(intent, raw_metadata),
        )
        log.info(
            "payment.record_fetched",
            amount_captured=str(record.amount_captured),
            currency=record.currency,
            item_count=len(record.metadata.items),
        )
        return record

    def parse_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        try:
            event = self._client.Webhook.construct_event(
                payload, signature, self._webhook_secret
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("payment.webhook_rejected", error=str(exc))
            raise InvalidWebhookSignature(str(exc)) from exc

        data_object = _field(_field(event, "data"), "object")
        return WebhookEvent(
            event_id=str(_field(event, "id", "")),
            event_type=str(_field(event, "type", "")),
            payment_reference=_field(data_object, "id"),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _billing_details(intent: Any, metadata: Any) -> BillingDetails:
        charge = _field(intent, "latest_charge")
        details = _field(charge, "billing_details") if not isinstance(charge, str) else None
        address = _field(details, "address")
        email = (
            _field(details, "email")
            or _field(intent, "receipt_email")
            or _field(metadata, "customerEmail", "")
        )
        return BillingDetails(
            email=email,
            name=_field(details, "name", ""),
            address=BillingAddress(
                line1=_field(address, "line1", ""),
                line2=_field(address, "line2", ""),
                city=_field(address, "city", ""),
                state=_field(address, "state", ""),
                postal_code=_field(address, "postal_code", ""),
                country=_field(address, "country", ""),
            ),
        )


@lru_cache(maxsize=1)
def get_payment_gateway() -> IPaymentGateway:
    """Build (once per process) the gateway used by views and the webhook."""
    stripe.max_network_retries = 2
    stripe.default_http_client = stripe.RequestsClient(
        timeout=settings.STRIPE_API_TIMEOUT
    )
    return StripePaymentGateway()
