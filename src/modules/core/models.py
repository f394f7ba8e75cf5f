"""Base abstract model and side-effect bookkeeping for the order engine.

Provides:
- ``BaseModel``: UUIDv7 primary key + created_at / updated_at timestamps.
- ``SideEffectJob``: durable record of every side-effect attempt
  (notification, inventory reservation/release) dispatched after an
  order change.

Design decisions:
- ``save()`` guard ensures ``updated_at`` is included when ``update_fields``
  is specified (Django skips ``auto_now`` fields otherwise).
- Jobs are written in the **same transaction** as the order change that
  produced them; the worker only ever sees jobs whose trigger committed.
"""

from __future__ import annotations

import uuid6
from django.db import models
from django.utils import timezone

# ---------------------------------------------------------------------------
# BaseModel
# ---------------------------------------------------------------------------


class BaseModel(models.Model):
    """Abstract base with UUIDv7 PK and timestamp bookkeeping."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid6.uuid7,
        editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        """Ensure ``updated_at`` is refreshed even when ``update_fields`` is passed."""
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Side-effect jobs
# ---------------------------------------------------------------------------


class JobStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    SUCCEEDED = "SUCCEEDED", "Succeeded"
    FAILED = "FAILED", "Failed"


class SideEffectJob(BaseModel):
    """One side effect triggered by an order change.

    Workflow:
    1. Dispatcher creates the job (``PENDING``) inside ``transaction.atomic()``.
    2. After commit, a Celery worker executes it.
    3. On success → ``mark_as_succeeded()``.
    4. On failure → ``mark_as_failed(error)`` increments ``attempts``;
       failed jobs are re-run manually (``manage.py retry_side_effects``).
    """

    job_type = models.CharField(max_length=50)
    aggregate_id = models.CharField(max_length=255)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=20,
        choices=JobStatus.choices,
        default=JobStatus.PENDING,
    )
    attempts = models.PositiveIntegerField(default=0)
    processed_at = models.DateTimeField(null=True, blank=True, default=None)
    error_message = models.TextField(null=True, blank=True, default=None)  # noqa: DJ01

    class Meta:
        db_table = "side_effect_jobs"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["aggregate_id"],
                name="sej_aggregate_id_idx",
            ),
            models.Index(
                fields=["status", "created_at"],
                name="sej_status_created_idx",
            ),
        ]

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def mark_as_succeeded(self) -> None:
        self.status = JobStatus.SUCCEEDED
        self.attempts += 1
        self.error_message = None
        self.processed_at = timezone.now()
        self.save(
            update_fields=["status", "attempts", "error_message", "processed_at"]
        )

    def mark_as_failed(self, error: str) -> None:
        """Mark the job as failed and keep the error for manual follow-up."""
        self.status = JobStatus.FAILED
        self.attempts += 1
        self.error_message = error
        self.processed_at = timezone.now()
        self.save(
            update_fields=["status", "attempts", "error_message", "processed_at"]
        )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.job_type} [{self.status}] ({self.aggregate_id})"
