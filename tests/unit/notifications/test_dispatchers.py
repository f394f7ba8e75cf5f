"""Unit tests for the email notification dispatcher."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from modules.notifications.constants import NotificationKind
from modules.notifications.dispatchers import (
    EmailNotificationDispatcher,
    resolve_locale,
    tracking_url,
)
from modules.notifications.exceptions import NotificationError

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(order_service, create_dto):
    return order_service.create_order(create_dto)


@pytest.fixture()
def dispatcher():
    return EmailNotificationDispatcher(
        from_email="orders@shop.test", reply_to="help@shop.test"
    )


class TestTrackingUrl:
    @pytest.mark.parametrize(
        ("carrier", "expected"),
        [
            ("USPS", "https://tools.usps.com/go/TrackConfirmAction?tLabels=94001"),
            ("ups", "https://www.ups.com/track?tracknum=94001"),
            (" FedEx ", "https://www.fedex.com/fedextrack/?trknbr=94001"),
            ("DHL", "https://www.dhl.com/en/express/tracking.html?AWB=94001"),
        ],
    )
    def test_known_carriers(self, carrier, expected):
        assert tracking_url(carrier, "94001") == expected

    def test_unknown_carrier_falls_back_to_search(self):
        assert tracking_url("Pony Express", "A 1") == (
            "https://www.google.com/search?q=Pony+Express+tracking+A+1"
        )


class TestResolveLocale:
    @pytest.mark.parametrize(
        ("locale", "expected"),
        [("es", "es"), ("es-MX", "es"), ("fr_CA", "fr"), ("de", "en"), (None, "en")],
    )
    def test_resolution(self, locale, expected):
        assert resolve_locale(locale) == expected


class TestSendOrderNotification:
    def test_confirmation_email(self, dispatcher, order, mailoutbox):
        message_id = dispatcher.send_order_notification(
            NotificationKind.ORDER_CONFIRMED, order, "en"
        )

        assert len(mailoutbox) == 1
        mail = mailoutbox[0]
        assert mail.subject == f"Order Confirmation - {order.order_number}"
        assert mail.to == ["ada@example.com"]
        assert mail.from_email == "orders@shop.test"
        assert mail.reply_to == ["help@shop.test"]
        assert mail.extra_headers["Message-ID"] == message_id
        assert "Hi Ada Lovelace," in mail.body
        assert "Denim Trucker Jacket (Levi's), size M: 40.00 USD" in mail.body
        assert "Total charged: 81.00 USD" in mail.body

    def test_localized_subject(self, dispatcher, order, mailoutbox):
        dispatcher.send_order_notification(NotificationKind.CANCELLED, order, "es-MX")

        assert mailoutbox[0].subject == (
            f"Tu pedido ha sido cancelado - {order.order_number}"
        )
        assert mailoutbox[0].body.startswith("Hola Ada Lovelace,")

    def test_shipping_email_includes_tracking(self, dispatcher, order, mailoutbox):
        dispatcher.send_order_notification(
            NotificationKind.SHIPPED,
            order,
            "en",
            {
                "carrier": "UPS",
                "tracking_number": "1Z999",
                "tracking_url": "https://www.ups.com/track?tracknum=1Z999",
                "estimated_delivery": "5-7 business days",
            },
        )

        body = mailoutbox[0].body
        assert "Tracking number: 1Z999" in body
        assert "Track your package: https://www.ups.com/track?tracknum=1Z999" in body
        assert "Estimated delivery: 5-7 business days" in body

    def test_unknown_kind_rejected(self, dispatcher, order):
        with pytest.raises(ValueError):
            dispatcher.send_order_notification("sms_blast", order, "en")

    def test_transport_failure_raises_notification_error(
        self, dispatcher, order, mailoutbox
    ):
        with patch(
            "modules.notifications.dispatchers.EmailMessage.send",
            side_effect=ConnectionRefusedError("SMTP down"),
        ):
            with pytest.raises(NotificationError, match="SMTP down"):
                dispatcher.send_order_notification(
                    NotificationKind.DELIVERED, order, "en"
                )
        assert mailoutbox == []
