"""Notification kinds, localized subjects and carrier tracking URLs."""

from django.db import models


class NotificationKind(models.TextChoices):
    ORDER_CONFIRMED = "order_confirmation", "Order confirmation"
    SHIPPED = "shipping_notification", "Shipping notification"
    DELIVERED = "delivery_confirmation", "Delivery confirmation"
    CANCELLED = "cancellation", "Cancellation"


DEFAULT_LOCALE = "en"

SUBJECTS: dict[str, dict[str, str]] = {
    "en": {
        NotificationKind.ORDER_CONFIRMED: "Order Confirmation - {order_number}",
        NotificationKind.SHIPPED: "Your Order Has Shipped - {order_number}",
        NotificationKind.DELIVERED: "Your Order Has Been Delivered - {order_number}",
        NotificationKind.CANCELLED: "Your Order Has Been Cancelled - {order_number}",
    },
    "es": {
        NotificationKind.ORDER_CONFIRMED: "Confirmación del pedido - {order_number}",
        NotificationKind.SHIPPED: "Tu pedido ha sido enviado - {order_number}",
        NotificationKind.DELIVERED: "Tu pedido ha sido entregado - {order_number}",
        NotificationKind.CANCELLED: "Tu pedido ha sido cancelado - {order_number}",
    },
    "fr": {
        NotificationKind.ORDER_CONFIRMED: "Confirmation de commande - {order_number}",
        NotificationKind.SHIPPED: "Votre commande a été expédiée - {order_number}",
        NotificationKind.DELIVERED: "Votre commande a été livrée - {order_number}",
        NotificationKind.CANCELLED: "Votre commande a été annulée - {order_number}",
    },
}

CARRIER_TRACKING_URLS: dict[str, str] = {
    "USPS": "https://tools.usps.com/go/TrackConfirmAction?tLabels={tracking_number}",
    "UPS": "https://www.ups.com/track?tracknum={tracking_number}",
    "FEDEX": "https://www.fedex.com/fedextrack/?trknbr={tracking_number}",
    "DHL": "https://www.dhl.com/en/express/tracking.html?AWB={tracking_number}",
}

DEFAULT_ESTIMATED_DELIVERY = "5-7 business days"
