from decimal import Decimal

import django.db.models.deletion
import uuid6
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("pending", "Pending"),
    ("paid", "Paid"),
    ("shipped", "Shipped"),
    ("delivered", "Delivered"),
    ("cancelled", "Cancelled"),
]


def _base_fields():
    return [
        (
            "id",
            models.UUIDField(
                default=uuid6.uuid7,
                editable=False,
                primary_key=True,
                serialize=False,
            ),
        ),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=_base_fields()
            + [
                (
                    "order_number",
                    models.CharField(db_index=True, editable=False, max_length=32),
                ),
                ("payment_reference", models.CharField(max_length=255, unique=True)),
                ("customer_email", models.EmailField(max_length=254)),
                ("customer_name", models.CharField(blank=True, default="", max_length=255)),
                ("shipping_street", models.CharField(blank=True, default="", max_length=255)),
                ("shipping_city", models.CharField(blank=True, default="", max_length=120)),
                ("shipping_region", models.CharField(blank=True, default="", max_length=120)),
                (
                    "shipping_postal_code",
                    models.CharField(blank=True, default="", max_length=20),
                ),
                ("shipping_country", models.CharField(blank=True, default="", max_length=2)),
                (
                    "subtotal",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10),
                ),
                (
                    "shipping",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10),
                ),
                (
                    "tax",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10),
                ),
                ("total", models.DecimalField(decimal_places=2, max_digits=10)),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "status",
                    models.CharField(choices=STATUS_CHOICES, default="pending", max_length=20),
                ),
                ("tracking_number", models.CharField(blank=True, default="", max_length=64)),
                ("carrier", models.CharField(blank=True, default="", max_length=32)),
                ("locale", models.CharField(default="en", max_length=10)),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("checkout", "Checkout"),
                            ("reconciliation", "Reconciliation"),
                            ("webhook", "Webhook fallback"),
                        ],
                        default="checkout",
                        max_length=20,
                    ),
                ),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="orders_status_idx"),
                    models.Index(fields=["customer_email"], name="orders_email_idx"),
                    models.Index(fields=["-created_at"], name="orders_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=_base_fields()
            + [
                ("position", models.PositiveIntegerField(default=0)),
                ("product_id", models.CharField(max_length=64)),
                ("title", models.CharField(max_length=255)),
                ("brand", models.CharField(blank=True, default="", max_length=120)),
                ("era", models.CharField(blank=True, default="", max_length=60)),
                ("size", models.CharField(blank=True, default="", max_length=30)),
                ("image_url", models.URLField(blank=True, default="", max_length=500)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "order_items",
                "ordering": ["position"],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusHistory",
            fields=_base_fields()
            + [
                (
                    "old_status",
                    models.CharField(
                        blank=True, choices=STATUS_CHOICES, max_length=20, null=True
                    ),
                ),
                ("new_status", models.CharField(choices=STATUS_CHOICES, max_length=20)),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                        to="orders.order",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "order_status_history",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["order", "-created_at"],
                        name="osh_order_created_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderEmailLog",
            fields=_base_fields()
            + [
                ("kind", models.CharField(max_length=40)),
                ("recipient", models.EmailField(max_length=254)),
                (
                    "status",
                    models.CharField(
                        choices=[("sent", "Sent"), ("failed", "Failed")],
                        max_length=10,
                    ),
                ),
                ("message_id", models.CharField(blank=True, default="", max_length=255)),
                ("error", models.TextField(blank=True, default="")),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="email_log",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "order_email_log",
                "ordering": ["created_at"],
            },
        ),
    ]
