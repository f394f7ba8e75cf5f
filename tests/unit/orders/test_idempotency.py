"""Unit tests for the payment-reference idempotency resolver."""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.db import IntegrityError

from modules.orders.constants import OrderStatus
from modules.orders.exceptions import OrderAlreadyExists
from modules.orders.idempotency import IdempotencyResolver
from modules.orders.models import Order
from modules.orders.repositories import OrderDjangoRepository

pytestmark = pytest.mark.unit


class StaleReadRepository(OrderDjangoRepository):
    """Misses the first lookup, as a concurrent creator would."""

    def __init__(self) -> None:
        super().__init__()
        self.lookups = 0

    def get_by_payment_reference(self, payment_reference):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return super().get_by_payment_reference(payment_reference)


def _insert(reference: str) -> Order:
    return Order.objects.create(
        payment_reference=reference,
        customer_email="a@b.co",
        total=Decimal("50.00"),
        status=OrderStatus.PAID,
    )


class TestCreateOnce:
    def test_runs_create_when_no_order_exists(self):
        resolver = IdempotencyResolver(OrderDjangoRepository())
        order = resolver.create_once("pi_new", lambda: _insert("pi_new"))
        assert order.payment_reference == "pi_new"

    def test_existing_order_short_circuits(self):
        existing = _insert("pi_seen")
        resolver = IdempotencyResolver(OrderDjangoRepository())
        calls = []

        with pytest.raises(OrderAlreadyExists) as exc_info:
            resolver.create_once("pi_seen", lambda: calls.append(1))

        assert exc_info.value.order.id == existing.id
        assert calls == []

    def test_lost_race_returns_winner(self):
        winner = _insert("pi_race")
        repo = StaleReadRepository()
        resolver = IdempotencyResolver(repo)

        with pytest.raises(OrderAlreadyExists) as exc_info:
            resolver.create_once("pi_race", lambda: _insert("pi_race"))

        assert exc_info.value.order.id == winner.id
        assert repo.lookups == 2
        assert Order.objects.filter(payment_reference="pi_race").count() == 1

    def test_lost_race_rolls_back_loser_writes(self):
        _insert("pi_race")
        resolver = IdempotencyResolver(StaleReadRepository())

        def create():
            _insert("pi_side_write")
            return _insert("pi_race")

        with pytest.raises(OrderAlreadyExists):
            resolver.create_once("pi_race", create)

        assert not Order.objects.filter(payment_reference="pi_side_write").exists()

    def test_unrelated_integrity_error_propagates(self):
        resolver = IdempotencyResolver(OrderDjangoRepository())

        def create():
            raise IntegrityError("NOT NULL constraint failed")

        with pytest.raises(IntegrityError):
            resolver.create_once("pi_broken", create)

    def test_find(self):
        order = _insert("pi_find")
        resolver = IdempotencyResolver(OrderDjangoRepository())
        assert resolver.find("pi_find").id == order.id
        assert resolver.find("pi_other") is None
