"""Integration tests for the Celery configuration and side-effect task."""

import pytest

from modules.core.models import JobStatus, SideEffectJob
from modules.orders.constants import SideEffect
from modules.orders.tasks import run_side_effect

pytestmark = pytest.mark.integration


class TestCeleryConfig:
    """Verifies that Celery loads through Django."""

    def test_celery_app_is_importable(self):
        from config.celery import app

        assert app.main == "orders"

    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "orders"

    def test_side_effect_task_registered(self):
        from config.celery import app

        assert "orders.run_side_effect" in app.tasks

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]


class TestRunSideEffect:
    def test_missing_job(self):
        assert run_side_effect("0190c0de-0000-7000-8000-000000000000") is False

    def test_executes_pending_job(self, order_service, create_dto, jacket):
        order = order_service.create_order(create_dto)
        job = SideEffectJob.objects.get(
            aggregate_id=str(order.id), job_type=SideEffect.RESERVE_INVENTORY
        )

        result = run_side_effect.delay(str(job.id), "cid-task")

        assert result.get() is True
        job.refresh_from_db()
        jacket.refresh_from_db()
        assert job.status == JobStatus.SUCCEEDED
        assert jacket.in_stock is False

    def test_succeeded_job_not_repeated(self, order_service, create_dto, mailoutbox):
        order = order_service.create_order(create_dto)
        job = SideEffectJob.objects.get(
            aggregate_id=str(order.id), job_type=SideEffect.NOTIFY_CONFIRMED
        )

        run_side_effect(str(job.id))
        run_side_effect(str(job.id))

        assert len(mailoutbox) == 1
        job.refresh_from_db()
        assert job.attempts == 1

    def test_failed_job_is_not_retried_automatically(self, order_service, create_dto):
        order = order_service.create_order(create_dto)
        job = SideEffectJob.objects.get(
            aggregate_id=str(order.id), job_type=SideEffect.NOTIFY_CONFIRMED
        )
        job.aggregate_id = "0190c0de-0000-7000-8000-000000000000"
        job.save()

        assert run_side_effect(str(job.id)) is False
        job.refresh_from_db()
        assert job.status == JobStatus.FAILED
        assert job.attempts == 1
