"""Unit tests for the SideEffectJob bookkeeping model."""

from __future__ import annotations

import pytest

from modules.core.models import JobStatus, SideEffectJob

pytestmark = pytest.mark.unit


@pytest.fixture()
def job():
    return SideEffectJob.objects.create(
        job_type="notify_confirmed",
        aggregate_id="0190c0de-0000-7000-8000-000000000001",
        payload={"correlation_id": "cid-1"},
    )


class TestSideEffectJobDefaults:
    def test_new_job_is_pending(self, job):
        assert job.status == JobStatus.PENDING
        assert job.attempts == 0
        assert job.processed_at is None
        assert job.error_message is None

    def test_uuid7_primary_key(self, job):
        assert job.id.version == 7

    def test_str_shows_type_status_and_order(self, job):
        assert str(job) == (
            "notify_confirmed [PENDING] (0190c0de-0000-7000-8000-000000000001)"
        )


class TestSideEffectJobTransitions:
    def test_mark_as_succeeded(self, job):
        job.mark_as_succeeded()
        job.refresh_from_db()

        assert job.status == JobStatus.SUCCEEDED
        assert job.attempts == 1
        assert job.processed_at is not None

    def test_mark_as_failed_keeps_error(self, job):
        job.mark_as_failed("SMTP connection refused")
        job.refresh_from_db()

        assert job.status == JobStatus.FAILED
        assert job.attempts == 1
        assert job.error_message == "SMTP connection refused"

    def test_success_after_failure_clears_error(self, job):
        job.mark_as_failed("boom")
        job.mark_as_succeeded()
        job.refresh_from_db()

        assert job.status == JobStatus.SUCCEEDED
        assert job.attempts == 2
        assert job.error_message is None

    def test_updated_at_refreshed_with_update_fields(self, job):
        before = job.updated_at
        job.mark_as_failed("boom")
        job.refresh_from_db()

        assert job.updated_at >= before
