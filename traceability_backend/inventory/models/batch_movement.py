# inventory/models/batch_movement.py

"""
BATCH MOVEMENT LEDGER

Immutable audit entry for every quantity or status event on a StockBatch.

GUARANTEES:
- Append-only (no updates, no deletes)
- Created ONCE, never edited
- Movement direction validated against type
- Recall-driven movements carry a reference to the recall
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from inventory.services.units import UNIT_CHOICES
from .stock_batch import StockBatch


class BatchMovement(models.Model):
    class MovementType(models.TextChoices):
        RECEIVED = "received", "Received"
        PRODUCED = "produced", "Produced"
        CONSUMED = "consumed", "Consumed in Production"
        CONSUMPTION_REVERSED = "consumption_reversed", "Consumption Reversed"
        QUARANTINED = "quarantined", "Quarantined"
        RELEASED = "released", "Released"
        DESTROYED = "destroyed", "Destroyed"
        RETURNED = "returned", "Returned"
        EXPIRED = "expired", "Expired"

    class Direction(models.TextChoices):
        IN = "IN", "Stock In"
        OUT = "OUT", "Stock Out"
        NONE = "NONE", "Status Only"

    TYPE_TO_DIRECTION = {
        MovementType.RECEIVED: Direction.IN,
        MovementType.PRODUCED: Direction.IN,
        MovementType.CONSUMPTION_REVERSED: Direction.IN,
        MovementType.CONSUMED: Direction.OUT,
        MovementType.DESTROYED: Direction.OUT,
        MovementType.RETURNED: Direction.OUT,
        MovementType.QUARANTINED: Direction.NONE,
        MovementType.RELEASED: Direction.NONE,
        MovementType.EXPIRED: Direction.NONE,
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    batch = models.ForeignKey(StockBatch, on_delete=models.PROTECT, related_name="movements")

    movement_type = models.CharField(max_length=24, choices=MovementType.choices)
    direction = models.CharField(max_length=4, choices=Direction.choices, blank=True)

    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    unit = models.CharField(max_length=8, choices=UNIT_CHOICES)

    reason = models.CharField(max_length=255, blank=True, default="")

    # Loose reference to the business document that caused the movement
    reference_type = models.CharField(max_length=40, blank=True, default="")
    reference_id = models.CharField(max_length=64, blank=True, default="")

    performed_by = models.CharField(max_length=150, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["batch", "created_at"]),
            models.Index(fields=["movement_type"]),
            models.Index(fields=["reference_type", "reference_id"]),
        ]

    def clean(self):
        if self.quantity is None or self.quantity < 0:
            raise ValidationError("quantity cannot be negative")

        expected = self.TYPE_TO_DIRECTION.get(self.movement_type)
        if not self.direction:
            self.direction = expected
        elif expected and self.direction != expected:
            raise ValidationError(f"{self.movement_type} requires direction={expected}")

        if self.direction != self.Direction.NONE and self.quantity == 0:
            raise ValidationError("quantity must be greater than zero for stock in/out movements")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("BatchMovement records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("BatchMovement records are immutable and cannot be deleted")

    def __str__(self):
        batch_code = getattr(self.batch, "batch_code", "batch")
        return f"{batch_code} | {self.movement_type} | {self.quantity} {self.unit}"
