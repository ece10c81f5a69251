# production/models/production_batch.py

"""
PRODUCTION BATCH (INTERNAL PROVENANCE)

CANONICAL MODEL:
- ProductionBatch = one production run (planned → in_progress → completed)
- Inputs record which StockBatches were consumed, and how much
- Outputs are StockBatches whose production_batch points here

GUARANTEES:
- batch_code unique per company
- Inputs are immutable once the run is completed or cancelled
- Quantities on inputs are service-managed (production_service consumes /
  restores stock on every change)
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from inventory.models import Company, StockBatch, StockItem
from inventory.services.units import UNIT_CHOICES, normalize_allergens


class ProductionBatch(models.Model):
    class Status(models.TextChoices):
        PLANNED = "planned", "Planned"
        IN_PROGRESS = "in_progress", "In Progress"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    LOCKED_STATES = {Status.COMPLETED, Status.CANCELLED}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="production_batches")

    batch_code = models.CharField(max_length=128)
    recipe_id = models.CharField(max_length=64, blank=True, default="", help_text="Opaque recipe reference")
    production_date = models.DateField()

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PLANNED)

    planned_quantity = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    actual_quantity = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    unit = models.CharField(max_length=8, choices=UNIT_CHOICES, default="kg")

    allergens = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, default="")

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-production_date", "-created_at"]
        indexes = [
            models.Index(fields=["company", "status"]),
            models.Index(fields=["production_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "batch_code"],
                name="unique_production_batch_code_per_company",
            ),
        ]

    def clean(self):
        for field in ("planned_quantity", "actual_quantity"):
            value = getattr(self, field)
            if value is not None and value < Decimal("0"):
                raise ValidationError({field: f"{field} cannot be negative"})
        if not isinstance(self.allergens, list):
            raise ValidationError({"allergens": "allergens must be a list"})

    def save(self, *args, **kwargs):
        if isinstance(self.allergens, (list, tuple, set)):
            self.allergens = normalize_allergens(self.allergens)
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def is_locked(self) -> bool:
        return self.status in self.LOCKED_STATES

    @property
    def yield_percent(self):
        """actual / planned * 100, or None when either side is missing."""
        if not self.planned_quantity or self.actual_quantity is None:
            return None
        return (self.actual_quantity / self.planned_quantity * Decimal("100")).quantize(Decimal("0.01"))

    def __str__(self):
        return f"{self.batch_code} ({self.status})"


class ProductionBatchInput(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    production_batch = models.ForeignKey(ProductionBatch, on_delete=models.CASCADE, related_name="inputs")
    stock_batch = models.ForeignKey(StockBatch, on_delete=models.PROTECT, related_name="consumptions")
    stock_item = models.ForeignKey(StockItem, on_delete=models.PROTECT, related_name="production_inputs")

    planned_quantity = models.DecimalField(max_digits=14, decimal_places=3)
    actual_quantity = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    unit = models.CharField(max_length=8, choices=UNIT_CHOICES)

    is_rework = models.BooleanField(default=False)
    rework_source_batch = models.ForeignKey(
        StockBatch,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="rework_uses",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["stock_batch"]),
            models.Index(fields=["rework_source_batch"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(planned_quantity__gte=0),
                name="chk_pbinput_planned_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(is_rework=True) | Q(rework_source_batch__isnull=True),
                name="chk_pbinput_rework_source_only_when_rework",
            ),
        ]

    def clean(self):
        if self.planned_quantity is None or self.planned_quantity < 0:
            raise ValidationError({"planned_quantity": "planned_quantity cannot be negative"})
        if self.actual_quantity is not None and self.actual_quantity < 0:
            raise ValidationError({"actual_quantity": "actual_quantity cannot be negative"})
        if self.rework_source_batch_id and not self.is_rework:
            raise ValidationError({"rework_source_batch": "rework_source_batch is only valid on rework inputs"})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def consumed_quantity(self) -> Decimal:
        """Quantity that moved across the production boundary (actual, else planned)."""
        if self.actual_quantity is not None:
            return self.actual_quantity
        return self.planned_quantity

    def __str__(self):
        label = "rework" if self.is_rework else "input"
        return f"{self.production_batch.batch_code} <- {self.stock_batch.batch_code} ({label})"
