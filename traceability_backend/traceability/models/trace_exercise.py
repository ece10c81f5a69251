# traceability/models/trace_exercise.py

"""
MOCK RECALL EXERCISE

A timed run of the full trace for one batch. The clock starts when the
exercise is opened and stops when both directions have been traced.
within_target compares elapsed time against MOCK_RECALL_TARGET_HOURS.
"""

import uuid
from datetime import timedelta

from django.db import models
from django.utils import timezone

from inventory.models import Company, StockBatch
from traceability.conf import traceability_setting


class TraceExercise(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="trace_exercises")
    stock_batch = models.ForeignKey(StockBatch, on_delete=models.PROTECT, related_name="trace_exercises")

    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    started_by = models.CharField(max_length=150, blank=True, default="")

    backward_node_count = models.PositiveIntegerField(null=True, blank=True)
    forward_node_count = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["-started_at"]
        indexes = [
            models.Index(fields=["company", "started_at"]),
        ]

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    @property
    def elapsed(self) -> timedelta:
        end = self.completed_at or timezone.now()
        return end - self.started_at

    @property
    def within_target(self):
        """None while the exercise is still running."""
        if self.completed_at is None:
            return None
        target = timedelta(hours=float(traceability_setting("MOCK_RECALL_TARGET_HOURS")))
        return self.elapsed <= target

    def __str__(self):
        return f"Exercise {self.stock_batch.batch_code} @ {self.started_at:%Y-%m-%d %H:%M}"
