"""Side-effect dispatcher and executor.

The dispatcher runs inside the transaction that changed the order: it
records one ``SideEffectJob`` per effect and schedules the Celery task
for after commit, so a rolled-back change never sends an email and the
HTTP response never waits for one.

The executor runs in the worker.  It never raises: every outcome is
written to the job (and, for notifications, to the order's email log).
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional

import structlog
from django.db import transaction

from modules.catalog.exceptions import CatalogError
from modules.core.middleware import get_correlation_id
from modules.core.models import SideEffectJob
from modules.notifications.constants import (
    DEFAULT_ESTIMATED_DELIVERY,
    NotificationKind,
)
from modules.notifications.dispatchers import tracking_url
from modules.notifications.exceptions import NotificationError
from modules.orders.constants import (
    CANCELLATION_SIDE_EFFECTS,
    INVENTORY_AVAILABILITY,
    EmailStatus,
    OrderStatus,
    SideEffect,
)

if TYPE_CHECKING:
    from modules.catalog.repositories.interfaces import ICatalogStore
    from modules.notifications.dispatchers import INotificationDispatcher
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

NOTIFICATION_KINDS: Dict[str, str] = {
    SideEffect.NOTIFY_CONFIRMED: NotificationKind.ORDER_CONFIRMED,
    SideEffect.NOTIFY_SHIPPED: NotificationKind.SHIPPED,
    SideEffect.NOTIFY_DELIVERED: NotificationKind.DELIVERED,
    SideEffect.NOTIFY_CANCELLED: NotificationKind.CANCELLED,
}


def _enqueue_task(job_id: str, correlation_id: str) -> None:
    from modules.orders.tasks import run_side_effect

    run_side_effect.delay(job_id, correlation_id)


class SideEffectDispatcher:
    """Records side-effect jobs and hands them to the worker after commit."""

    def __init__(self, enqueue: Optional[Callable[[str, str], Any]] = None) -> None:
        self._enqueue = enqueue or _enqueue_task

    def dispatch(
        self, order_id: Any, side_effects: Iterable[str]
    ) -> List[SideEffectJob]:
        correlation_id = get_correlation_id()
        jobs = []
        for effect in side_effects:
            job = SideEffectJob.objects.create(
                job_type=str(effect),
                aggregate_id=str(order_id),
                payload={"correlation_id": correlation_id},
            )
            transaction.on_commit(
                partial(self._enqueue, str(job.id), correlation_id),
                robust=True,
            )
            jobs.append(job)

        if jobs:
            logger.info(
                "side_effect.dispatched",
                order_id=str(order_id),
                job_types=[job.job_type for job in jobs],
            )
        return jobs


class SideEffectExecutor:
    """Carries out one side-effect job against the external collaborators."""

    def __init__(
        self,
        catalog_store: ICatalogStore,
        notifier: INotificationDispatcher,
        order_repository: IOrderRepository,
    ) -> None:
        self._catalog = catalog_store
        self._notifier = notifier
        self._order_repo = order_repository

    def execute(self, job: SideEffectJob) -> bool:
        """Run *job* and record its outcome; return ``True`` on success.

        Once an order is cancelled, any other pending or failed job for it
        (a late reservation, a shipping email) is obsolete: it is recorded
        as succeeded without touching the catalog or the customer.
        """
        log = logger.bind(
            job_id=str(job.id),
            job_type=job.job_type,
            order_id=job.aggregate_id,
            attempt=job.attempts + 1,
        )
        try:
            order = self._order_repo.get_by_id(job.aggregate_id)
            if order is None:
                errors = [f"Order {job.aggregate_id} not found."]
            elif self._is_obsolete(order, job.job_type):
                job.mark_as_succeeded()
                log.info("side_effect.obsolete", order_status=order.status)
                return True
            elif job.job_type in INVENTORY_AVAILABILITY:
                available = INVENTORY_AVAILABILITY[job.job_type]
                errors = self._apply_inventory(job, available)
            elif job.job_type in NOTIFICATION_KINDS:
                errors = self._notify(order, NOTIFICATION_KINDS[job.job_type])
            else:
                errors = [f"Unknown side effect {job.job_type!r}."]
        except Exception as exc:  # noqa: BLE001
            log.exception("side_effect.crashed")
            errors = [f"{type(exc).__name__}: {exc}"]

        if errors:
            job.mark_as_failed("; ".join(errors))
            log.warning("side_effect.failed", errors=errors)
            return False

        job.mark_as_succeeded()
        log.info("side_effect.succeeded")
        return True

    @staticmethod
    def _is_obsolete(order: Order, job_type: str) -> bool:
        return (
            order.status == OrderStatus.CANCELLED
            and job_type not in CANCELLATION_SIDE_EFFECTS
        )

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def _apply_inventory(self, job: SideEffectJob, available: bool) -> List[str]:
        items = self._order_repo.items_of(job.aggregate_id)
        if not items:
            return [f"Order {job.aggregate_id} has no items."]

        errors: List[str] = []
        for item in items:
            product_id = item["product_id"]
            try:
                self._catalog.set_availability(product_id, available)
            except CatalogError as exc:
                logger.warning(
                    "side_effect.inventory_item_failed",
                    order_id=job.aggregate_id,
                    product_id=product_id,
                    available=available,
                    error=str(exc),
                )
                errors.append(f"{product_id}: {exc}")
        return errors

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, order: Order, kind: str) -> List[str]:
        extra: Dict[str, Any] = {}
        if kind == NotificationKind.SHIPPED:
            extra = {
                "carrier": order.carrier,
                "tracking_number": order.tracking_number,
                "tracking_url": tracking_url(order.carrier, order.tracking_number),
                "estimated_delivery": DEFAULT_ESTIMATED_DELIVERY,
            }

        try:
            message_id = self._notifier.send_order_notification(
                kind, order, order.locale, extra
            )
        except Exception as exc:  # noqa: BLE001
            error = (
                str(exc)
                if isinstance(exc, NotificationError)
                else f"{type(exc).__name__}: {exc}"
            )
            logger.warning(
                "side_effect.notification_failed",
                order_id=str(order.id),
                kind=str(kind),
                error=error,
            )
            self._order_repo.add_email_log(
                order_id=order.id,
                kind=kind,
                recipient=order.customer_email,
                status=EmailStatus.FAILED,
                error=error,
            )
            return [error]

        self._order_repo.add_email_log(
            order_id=order.id,
            kind=kind,
            recipient=order.customer_email,
            status=EmailStatus.SENT,
            message_id=message_id or "",
        )
        return []


def build_executor() -> SideEffectExecutor:
    """Executor wired to the Django catalog store and the email dispatcher."""
    from modules.catalog.repositories import ProductCatalogStore
    from modules.notifications.dispatchers import EmailNotificationDispatcher
    from modules.orders.repositories import OrderDjangoRepository

    return SideEffectExecutor(
        catalog_store=ProductCatalogStore(),
        notifier=EmailNotificationDispatcher(),
        order_repository=OrderDjangoRepository(),
    )
