"""Celery tasks for order side effects."""

from __future__ import annotations

import structlog
from celery import shared_task

from modules.core.middleware import bind_correlation_id
from modules.core.models import JobStatus, SideEffectJob
from modules.orders.dispatcher import build_executor

logger = structlog.get_logger(__name__)


@shared_task(name="orders.run_side_effect", ignore_result=True)
def run_side_effect(job_id: str, correlation_id: str = "") -> bool:
    """Execute one side-effect job.

    Failures are recorded on the job and never retried automatically;
    ``manage.py retry_side_effects`` re-runs them.
    """
    if correlation_id:
        bind_correlation_id(correlation_id)

    job = SideEffectJob.objects.filter(id=job_id).first()
    if job is None:
        logger.warning("side_effect.job_missing", job_id=job_id)
        return False
    if job.status == JobStatus.SUCCEEDED:
        logger.info("side_effect.already_succeeded", job_id=job_id)
        return True

    return build_executor().execute(job)
