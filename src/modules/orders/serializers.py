"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderEmailLog, OrderItem, OrderStatusHistory

_MONEY = {"max_digits": 10, "decimal_places": 2, "min_value": 0}

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class ShippingAddressSerializer(serializers.Serializer):
    street = serializers.CharField(required=False, default="", allow_blank=True)
    city = serializers.CharField(required=False, default="", allow_blank=True)
    region = serializers.CharField(required=False, default="", allow_blank=True)
    postal_code = serializers.CharField(required=False, default="", allow_blank=True)
    country = serializers.CharField(
        required=False, default="", allow_blank=True, max_length=2
    )


class CustomerInfoSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(required=False, default="", allow_blank=True)
    address = ShippingAddressSerializer(required=False)


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single item in an order creation request."""

    product_id = serializers.CharField(max_length=64)
    title = serializers.CharField(max_length=255)
    brand = serializers.CharField(required=False, default="", allow_blank=True)
    era = serializers.CharField(required=False, default="", allow_blank=True)
    size = serializers.CharField(required=False, default="", allow_blank=True)
    image_url = serializers.URLField(required=False, default="", allow_blank=True)
    unit_price = serializers.DecimalField(**_MONEY)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload."""

    payment_reference = serializers.CharField(max_length=255)
    customer_info = CustomerInfoSerializer()
    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    subtotal = serializers.DecimalField(**_MONEY)
    shipping = serializers.DecimalField(**_MONEY, required=False, default=0)
    tax = serializers.DecimalField(**_MONEY, required=False, default=0)
    total = serializers.DecimalField(**_MONEY)
    currency = serializers.CharField(required=False, default="usd", max_length=3)
    locale = serializers.CharField(required=False, allow_blank=True, max_length=10)


class UpdateOrderStatusSerializer(serializers.Serializer):
    """Validates a status change; tracking details belong to ``shipped``."""

    status = serializers.ChoiceField(choices=OrderStatus.choices)
    tracking_number = serializers.CharField(
        required=False, default="", allow_blank=True, max_length=64
    )
    carrier = serializers.CharField(
        required=False, default="", allow_blank=True, max_length=32
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)

    def validate(self, attrs):
        if attrs["status"] == OrderStatus.SHIPPED:
            if not attrs.get("tracking_number"):
                raise serializers.ValidationError(
                    {"tracking_number": "Required when shipping an order."}
                )
        elif attrs.get("tracking_number") or attrs.get("carrier"):
            raise serializers.ValidationError(
                "Tracking details can only be set when shipping an order."
            )
        return attrs


class ReconcileOrderSerializer(serializers.Serializer):
    payment_reference = serializers.CharField(max_length=255)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for the item snapshot."""

    class Meta:
        model = OrderItem
        fields = [
            "product_id",
            "title",
            "brand",
            "era",
            "size",
            "image_url",
            "unit_price",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class EmailLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderEmailLog
        fields = ["kind", "recipient", "status", "message_id", "error", "created_at"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items, history and email log."""

    customer_info = serializers.SerializerMethodField()
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)
    email_log = EmailLogSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "payment_reference",
            "customer_info",
            "status",
            "subtotal",
            "shipping",
            "tax",
            "total",
            "currency",
            "tracking_number",
            "carrier",
            "locale",
            "source",
            "created_at",
            "updated_at",
            "items",
            "status_history",
            "email_log",
        ]
        read_only_fields = fields

    def get_customer_info(self, order: Order) -> dict:
        return {
            "email": order.customer_email,
            "name": order.customer_name,
            "address": {
                "street": order.shipping_street,
                "city": order.shipping_city,
                "region": order.shipping_region,
                "postal_code": order.shipping_postal_code,
                "country": order.shipping_country,
            },
        }


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "payment_reference",
            "customer_email",
            "customer_name",
            "status",
            "total",
            "item_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_item_count(self, order: Order) -> int:
        return len(order.items.all())
