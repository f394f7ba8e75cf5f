"""Integration tests for POST /api/v1/payments/webhook/.

Signatures are produced with the test webhook secret and verified by
the real Stripe SDK; only the PaymentIntent lookup is faked.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from unittest.mock import patch

import pytest
import stripe

from modules.orders.models import Order
from modules.payments.exceptions import (
    PaymentGatewayUnavailable,
    PaymentRecordNotFound,
)
from modules.payments.gateway import StripePaymentGateway

pytestmark = pytest.mark.integration

URL = "/api/v1/payments/webhook/"


class WebhookGateway(StripePaymentGateway):
    """Real signature verification with records served from memory."""

    def __init__(self, secret, records) -> None:
        super().__init__(
            api_key="sk_test_webhook", webhook_secret=secret, client=stripe
        )
        self.records = records
        self.error = None

    def get_payment_record(self, payment_reference):
        if self.error is not None:
            raise self.error
        try:
            return self.records[payment_reference]
        except KeyError:
            raise PaymentRecordNotFound(payment_reference) from None


@pytest.fixture()
def gateway(settings):
    gateway = WebhookGateway(settings.STRIPE_WEBHOOK_SECRET, {})
    with patch("modules.payments.views.get_payment_gateway", return_value=gateway):
        yield gateway


def _event(event_type, payment_reference="pi_hook"):
    return json.dumps(
        {
            "id": "evt_test_1",
            "object": "event",
            "type": event_type,
            "data": {"object": {"id": payment_reference, "object": "payment_intent"}},
        }
    )


def _sign(payload, secret):
    timestamp = int(time.time())
    digest = hmac.new(
        secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


def _deliver(client, payload, signature):
    return client.post(
        URL,
        data=payload,
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=signature,
    )


# ---------------------------------------------------------------------------
# Signature handling
# ---------------------------------------------------------------------------


class TestWebhookSignature:
    def test_missing_signature(self, api_client, gateway):
        response = api_client.post(
            URL,
            data=_event("payment_intent.succeeded"),
            content_type="application/json",
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "missing_signature"

    def test_invalid_signature(self, api_client, gateway):
        payload = _event("payment_intent.succeeded")
        response = _deliver(api_client, payload, _sign(payload, "whsec_wrong"))

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "invalid_signature"

    def test_secret_not_configured(self, api_client, gateway, settings):
        settings.STRIPE_WEBHOOK_SECRET = ""
        payload = _event("payment_intent.succeeded")

        response = _deliver(api_client, payload, _sign(payload, "whsec_any"))

        assert response.status_code == 500
        assert response.json()["errors"][0]["code"] == "not_configured"


# ---------------------------------------------------------------------------
# payment_intent.succeeded
# ---------------------------------------------------------------------------


class TestPaymentSucceeded:
    def test_creates_missing_order(
        self, api_client, gateway, settings, make_payment_record, jacket, tee
    ):
        gateway.records["pi_hook"] = make_payment_record("pi_hook", [jacket, tee])
        payload = _event("payment_intent.succeeded")

        response = _deliver(
            api_client, payload, _sign(payload, settings.STRIPE_WEBHOOK_SECRET)
        )

        assert response.status_code == 200
        order = Order.objects.get(payment_reference="pi_hook")
        assert response.json() == {"received": True, "order_id": str(order.id)}
        assert order.source == "webhook"

    def test_existing_order_left_untouched(
        self, api_client, gateway, settings, placed_order
    ):
        payload = _event("payment_intent.succeeded", placed_order.payment_reference)

        response = _deliver(
            api_client, payload, _sign(payload, settings.STRIPE_WEBHOOK_SECRET)
        )

        assert response.status_code == 200
        assert response.json()["order_id"] == str(placed_order.id)
        assert Order.objects.get(id=placed_order.id).source == "checkout"
        assert Order.objects.count() == 1

    def test_redelivery_creates_one_order(
        self, api_client, gateway, settings, make_payment_record, jacket
    ):
        gateway.records["pi_hook"] = make_payment_record("pi_hook", [jacket])
        payload = _event("payment_intent.succeeded")
        signature = _sign(payload, settings.STRIPE_WEBHOOK_SECRET)

        first = _deliver(api_client, payload, signature)
        second = _deliver(api_client, payload, signature)

        assert first.json()["order_id"] == second.json()["order_id"]
        assert Order.objects.filter(payment_reference="pi_hook").count() == 1

    def test_unrecoverable_payment_acknowledged(self, api_client, gateway, settings):
        payload = _event("payment_intent.succeeded", "pi_unknown")

        response = _deliver(
            api_client, payload, _sign(payload, settings.STRIPE_WEBHOOK_SECRET)
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "order_id": None}

    def test_gateway_down_requests_redelivery(self, api_client, gateway, settings):
        gateway.error = PaymentGatewayUnavailable("timeout")
        payload = _event("payment_intent.succeeded")

        response = _deliver(
            api_client, payload, _sign(payload, settings.STRIPE_WEBHOOK_SECRET)
        )

        assert response.status_code == 503


# ---------------------------------------------------------------------------
# Other events
# ---------------------------------------------------------------------------


class TestOtherEvents:
    @pytest.mark.parametrize(
        "event_type",
        [
            "payment_intent.payment_failed",
            "payment_intent.canceled",
            "charge.refunded",
        ],
    )
    def test_acknowledged_without_order(
        self, api_client, gateway, settings, event_type
    ):
        payload = _event(event_type)

        response = _deliver(
            api_client, payload, _sign(payload, settings.STRIPE_WEBHOOK_SECRET)
        )

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert not Order.objects.exists()
