"""Unit tests for OrderDjangoRepository."""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.contrib.auth.models import AnonymousUser

from modules.orders.constants import OrderStatus
from modules.orders.events import OrderStatusChanged
from modules.orders.repositories import OrderDjangoRepository

pytestmark = pytest.mark.unit


class RecordingBus:
    def __init__(self) -> None:
        self.published = []

    def publish(self, event) -> None:
        self.published.append(event)


def _data(reference="pi_repo", **overrides):
    data = {
        "payment_reference": reference,
        "customer_email": "a@b.co",
        "total": Decimal("30.00"),
        "status": OrderStatus.PAID,
        "items": [
            {"product_id": "p1", "title": "Cap", "unit_price": Decimal("10.00")},
            {"product_id": "p2", "title": "Scarf", "unit_price": Decimal("20.00")},
        ],
    }
    data.update(overrides)
    return data


class TestCreate:
    def test_creates_order_and_positioned_items(self):
        repo = OrderDjangoRepository(bus=RecordingBus())
        order = repo.create(_data())

        assert repo.items_of(order.id) == [
            {"product_id": "p1", "title": "Cap"},
            {"product_id": "p2", "title": "Scarf"},
        ]
        assert [item.position for item in order.items.all()] == [0, 1]


class TestSave:
    def test_publishes_and_clears_domain_events(self):
        bus = RecordingBus()
        repo = OrderDjangoRepository(bus=bus)
        order = repo.create(_data())
        order.add_domain_event(OrderStatusChanged(aggregate_id=order.id))

        repo.save(order)

        assert [event.event_name for event in bus.published] == ["OrderStatusChanged"]
        assert order.domain_events == []

    def test_save_without_events_publishes_nothing(self):
        bus = RecordingBus()
        repo = OrderDjangoRepository(bus=bus)
        repo.save(repo.create(_data()))
        assert bus.published == []


class TestReads:
    def test_get_by_id_invalid_uuid(self):
        assert OrderDjangoRepository().get_by_id("not-a-uuid") is None

    def test_get_for_update(self):
        repo = OrderDjangoRepository()
        order = repo.create(_data())
        assert repo.get_for_update(str(order.id)).id == order.id

    def test_get_by_payment_reference(self):
        repo = OrderDjangoRepository()
        order = repo.create(_data("pi_lookup"))
        assert repo.get_by_payment_reference("pi_lookup").id == order.id
        assert repo.get_by_payment_reference("pi_other") is None

    def test_count_by_status(self):
        repo = OrderDjangoRepository()
        repo.create(_data("pi_a"))
        repo.create(_data("pi_b", status=OrderStatus.CANCELLED))

        counts = repo.count_by_status()

        assert counts["paid"] == 1
        assert counts["cancelled"] == 1
        assert counts["shipped"] == 0


class TestAuditTrails:
    def test_anonymous_user_recorded_as_system(self):
        repo = OrderDjangoRepository()
        order = repo.create(_data())
        history = repo.add_history(
            order.id,
            OrderStatus.CANCELLED,
            old_status=OrderStatus.PAID,
            user=AnonymousUser(),
        )
        assert history.user is None

    def test_email_log(self):
        repo = OrderDjangoRepository()
        order = repo.create(_data())
        log = repo.add_email_log(
            order.id, "order_confirmation", "a@b.co", "sent", message_id="<m@x>"
        )
        assert log.message_id == "<m@x>"
        assert list(order.email_log.all()) == [log]
