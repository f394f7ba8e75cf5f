"""Notification dispatcher port and the Django email adapter.

Dispatchers raise ``NotificationError`` on failure; the order engine's
side-effect executor records the outcome on the order's email log and
never lets a failed email affect the order itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from email.utils import make_msgid
from typing import TYPE_CHECKING, Any, Dict, Optional
from urllib.parse import quote_plus

import structlog
from django.conf import settings
from django.core.mail import EmailMessage
from django.template import TemplateDoesNotExist
from django.template.loader import render_to_string

from modules.notifications.constants import (
    CARRIER_TRACKING_URLS,
    DEFAULT_LOCALE,
    SUBJECTS,
    NotificationKind,
)
from modules.notifications.exceptions import NotificationError

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)

GREETINGS: Dict[str, str] = {
    "en": "Hi {name},",
    "es": "Hola {name},",
    "fr": "Bonjour {name},",
}


def tracking_url(carrier: str, tracking_number: str) -> str:
    """Return the public tracking page for *carrier*, or a search URL."""
    template = CARRIER_TRACKING_URLS.get((carrier or "").strip().upper())
    if template:
        return template.format(tracking_number=quote_plus(tracking_number))
    query = quote_plus(f"{carrier} tracking {tracking_number}")
    return f"https://www.google.com/search?q={query}"


def resolve_locale(locale: Optional[str]) -> str:
    """Reduce ``es-MX`` style tags to a supported language, else the default."""
    language = (locale or "").split("-")[0].split("_")[0].lower()
    return language if language in SUBJECTS else DEFAULT_LOCALE


class INotificationDispatcher(ABC):
    """Transactional notification contract used by the order engine."""

    @abstractmethod
    def send_order_notification(
        self,
        kind: str,
        order: Order,
        locale: Optional[str],
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Send *kind* for *order*; return the provider message id.

        Raises:
            NotificationError: the message could not be sent.
        """


class EmailNotificationDispatcher(INotificationDispatcher):
    """Plain-text transactional email through Django's mail backend."""

    def __init__(
        self,
        from_email: Optional[str] = None,
        reply_to: Optional[str] = None,
        connection: Any = None,
    ) -> None:
        self._from_email = from_email or settings.ORDERS_FROM_EMAIL
        self._reply_to = reply_to or settings.ORDERS_REPLY_TO
        self._connection = connection

    def send_order_notification(
        self,
        kind: str,
        order: Order,
        locale: Optional[str],
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        language = resolve_locale(locale)
        kind = NotificationKind(kind)
        log = logger.bind(
            order_id=str(order.id),
            kind=kind.value,
            locale=language,
        )

        subject = SUBJECTS[language][kind].format(order_number=order.order_number)
        context = {
            "order": order,
            "items": list(order.items.all()),
            "greeting": GREETINGS[language].format(
                name=order.customer_name or order.customer_email
            ),
            "extra": extra or {},
        }

        try:
            body = render_to_string(f"notifications/{kind.value}.txt", context)
        except TemplateDoesNotExist as exc:
            raise NotificationError(f"No template for {kind.value}.") from exc

        message_id = make_msgid(domain=self._from_email.split("@")[-1])
        message = EmailMessage(
            subject=subject,
            body=body,
            from_email=self._from_email,
            to=[order.customer_email],
            reply_to=[self._reply_to],
            headers={"Message-ID": message_id},
            connection=self._connection,
        )

        try:
            sent = message.send()
        except OSError as exc:
            log.warning("notification.send_failed", error=str(exc))
            raise NotificationError(str(exc)) from exc

        if not sent:
            raise NotificationError("Mail backend accepted no messages.")

        log.info("notification.sent", message_id=message_id)
        return message_id
