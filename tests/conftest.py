from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.catalog.exceptions import ProductNotFound
from modules.catalog.models import Product
from modules.catalog.repositories.interfaces import ICatalogStore
from modules.notifications.dispatchers import INotificationDispatcher
from modules.notifications.exceptions import NotificationError
from modules.orders.dtos import CreateOrderDTO
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.dtos import (
    BillingAddress,
    BillingDetails,
    PaymentMetadata,
    PaymentRecord,
)
from modules.payments.exceptions import PaymentRecordNotFound
from modules.payments.gateway import IPaymentGateway

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def staff_client():
    """APIClient authenticated as a staff user (order administration)."""
    client = APIClient()
    user = User.objects.create_user(
        username="orders-admin", password="testpass123", is_staff=True
    )
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def customer_client():
    """APIClient authenticated as a regular, non-staff user."""
    client = APIClient()
    user = User.objects.create_user(username="shopper", password="testpass123")
    client.force_authenticate(user=user)
    return client


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def jacket():
    return Product.objects.create(
        title="Denim Trucker Jacket",
        brand="Levi's",
        era="1980s",
        size="M",
        price=Decimal("40.00"),
        in_stock=True,
    )


@pytest.fixture()
def tee():
    return Product.objects.create(
        title="Band Tour Tee",
        brand="Screen Stars",
        era="1990s",
        size="L",
        price=Decimal("25.00"),
        in_stock=True,
    )


def item_payload(product: Product) -> Dict[str, Any]:
    return {
        "product_id": str(product.id),
        "title": product.title,
        "brand": product.brand,
        "era": product.era,
        "size": product.size,
        "unit_price": str(product.price),
    }


@pytest.fixture()
def order_payload(jacket, tee):
    """A checkout submission for a captured payment of $81.00."""
    return {
        "payment_reference": "pi_checkout_001",
        "customer_info": {
            "email": "ada@example.com",
            "name": "Ada Lovelace",
            "address": {
                "street": "12 Analytical Row",
                "city": "Portland",
                "region": "OR",
                "postal_code": "97201",
                "country": "US",
            },
        },
        "items": [item_payload(jacket), item_payload(tee)],
        "subtotal": "65.00",
        "shipping": "10.00",
        "tax": "6.00",
        "total": "81.00",
        "locale": "en",
    }


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    return OrderService(order_repository=OrderDjangoRepository())


@pytest.fixture()
def create_dto(order_payload):
    return CreateOrderDTO.model_validate(order_payload)


@pytest.fixture()
def placed_order(order_service, create_dto, django_capture_on_commit_callbacks):
    """A paid order whose placement side effects have already run."""
    with django_capture_on_commit_callbacks(execute=True):
        order = order_service.create_order(create_dto)
    return order


# ---------------------------------------------------------------------------
# Fakes for the external collaborators
# ---------------------------------------------------------------------------


class FakePaymentGateway(IPaymentGateway):
    """In-memory gateway: ``records`` maps payment reference to record."""

    def __init__(self, records: Optional[Dict[str, PaymentRecord]] = None) -> None:
        self.records = dict(records or {})
        self.error: Optional[Exception] = None
        self.calls: List[str] = []

    def get_payment_record(self, payment_reference: str) -> PaymentRecord:
        self.calls.append(payment_reference)
        if self.error is not None:
            raise self.error
        try:
            return self.records[payment_reference]
        except KeyError:
            raise PaymentRecordNotFound(payment_reference) from None

    def parse_webhook_event(self, payload, signature):
        raise NotImplementedError


class FakeCatalogStore(ICatalogStore):
    """Records availability calls; ``failing`` product ids raise."""

    def __init__(self, failing: tuple = ()) -> None:
        self.failing = set(failing)
        self.calls: List[tuple] = []

    def set_availability(self, product_id: str, available: bool) -> None:
        self.calls.append((product_id, available))
        if product_id in self.failing:
            raise ProductNotFound(f"Product {product_id} not found.")


class FakeNotifier(INotificationDispatcher):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[tuple] = []

    def send_order_notification(self, kind, order, locale, extra=None) -> str:
        if self.fail:
            raise NotificationError("SMTP connection refused")
        self.sent.append((str(kind), order.id, locale, extra or {}))
        return f"<{len(self.sent)}@test>"


def _payment_record(
    payment_reference: str,
    products: List[Product],
    amount: str = "81.00",
    email: str = "grace@example.com",
) -> PaymentRecord:
    return PaymentRecord(
        payment_reference=payment_reference,
        amount_captured=Decimal(amount),
        currency="usd",
        metadata=PaymentMetadata(
            items=[
                {"productId": str(p.id), "title": p.title, "price": float(p.price)}
                for p in products
            ],
            subtotal=Decimal("65.00"),
            shipping=Decimal("10.00"),
            locale="es",
        ),
        billing=BillingDetails(
            email=email,
            name="Grace Hopper",
            address=BillingAddress(
                line1="1 Compiler Way",
                line2="Apt 2",
                city="Arlington",
                state="VA",
                postal_code="22201",
                country="US",
            ),
        ),
    )


@pytest.fixture()
def make_payment_record():
    """Factory for gateway records whose metadata lists *products*."""
    return _payment_record


@pytest.fixture()
def fake_gateway():
    return FakePaymentGateway()


@pytest.fixture()
def fake_catalog():
    return FakeCatalogStore()


@pytest.fixture()
def fake_notifier():
    return FakeNotifier()
