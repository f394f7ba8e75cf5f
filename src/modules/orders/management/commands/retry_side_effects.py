from __future__ import annotations

from django.core.management.base import BaseCommand

from modules.core.models import JobStatus, SideEffectJob
from modules.orders.constants import SideEffect
from modules.orders.dispatcher import build_executor


class Command(BaseCommand):
    help = "Re-run failed order side effects (emails, inventory changes)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--job-type",
            action="append",
            choices=SideEffect.values,
            dest="job_types",
            help="Only retry jobs of this type (repeatable).",
        )
        parser.add_argument(
            "--order",
            dest="order_id",
            help="Only retry jobs of this order id.",
        )
        parser.add_argument(
            "--include-pending",
            action="store_true",
            help="Also run jobs that were never picked up by a worker.",
        )
        parser.add_argument("--limit", type=int, default=100)

    def handle(self, *args, **options):
        statuses = [JobStatus.FAILED]
        if options["include_pending"]:
            statuses.append(JobStatus.PENDING)

        jobs = SideEffectJob.objects.filter(status__in=statuses)
        if options["job_types"]:
            jobs = jobs.filter(job_type__in=options["job_types"])
        if options["order_id"]:
            jobs = jobs.filter(aggregate_id=options["order_id"])
        jobs = list(jobs.order_by("created_at")[: options["limit"]])

        if not jobs:
            self.stdout.write("No side effects to retry.")
            return

        executor = build_executor()
        succeeded = sum(1 for job in jobs if executor.execute(job))
        failed = len(jobs) - succeeded

        style = self.style.SUCCESS if not failed else self.style.WARNING
        self.stdout.write(
            style(
                f"Retried {len(jobs)} side effects: "
                f"{succeeded} succeeded, {failed} failed."
            )
        )
