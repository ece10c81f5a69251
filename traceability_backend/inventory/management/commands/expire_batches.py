# inventory/management/commands/expire_batches.py

"""
EXPIRE BATCHES (EXTERNAL CLOCK)

Moves every ACTIVE batch whose use-by date has passed to EXPIRED.

Rules:
- Idempotent: rerunning on the same day changes nothing.
- Supports --dry-run and --date for back-dated runs.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from inventory.models import StockBatch
from inventory.services.batch_state import expire_due_batches
from inventory.services.units import parse_iso_date


class Command(BaseCommand):
    help = "Expire active stock batches whose use-by date has passed."

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            type=str,
            default="",
            help="Treat this date (YYYY-MM-DD) as today. Default: today.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the batches that would expire without saving.",
        )

    def handle(self, *args, **options):
        raw_date = (options.get("date") or "").strip()
        try:
            today = parse_iso_date(raw_date, field_name="--date") or timezone.localdate()
        except ValidationError as exc:
            raise CommandError("; ".join(exc.messages)) from exc

        if options.get("dry_run"):
            due = StockBatch.objects.filter(status=StockBatch.Status.ACTIVE, use_by_date__lt=today)
            for batch in due:
                self.stdout.write(f"would expire: {batch.batch_code} (use by {batch.use_by_date})")
            self.stdout.write(f"DRY RUN: {due.count()} batch(es) due.")
            return

        expired = expire_due_batches(today=today)
        for batch in expired:
            self.stdout.write(f"expired: {batch.batch_code}")

        self.stdout.write(self.style.SUCCESS(f"Expired {len(expired)} batch(es)."))
