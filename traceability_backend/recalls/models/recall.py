# recalls/models/recall.py

"""
RECALL / WITHDRAWAL (COMPLIANCE RECORD)

CANONICAL MODEL:
- Recall = one recall or withdrawal, identified by recall_code (unique per company)
- RecallAffectedBatch = one StockBatch registered to a recall (at most once)
- RecallNotification = one customer notification (append-only)

GUARANTEES:
- severity is immutable once set (assigned from the risk assessment)
- status moves only through recalls.services.recall_workflow
- affected batches and notifications are locked once the recall is
  notified or later
"""

import uuid
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from inventory.models import Company, Customer, StockBatch
from inventory.services.units import UNIT_CHOICES
from traceability.conf import traceability_setting


class Recall(models.Model):
    class RecallType(models.TextChoices):
        RECALL = "recall", "Recall"
        WITHDRAWAL = "withdrawal", "Withdrawal"

    class Severity(models.TextChoices):
        CLASS_1 = "class_1", "Class 1"
        CLASS_2 = "class_2", "Class 2"
        CLASS_3 = "class_3", "Class 3"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        ACTIVE = "active", "Active"
        INVESTIGATING = "investigating", "Investigating"
        NOTIFIED = "notified", "Notified"
        RESOLVED = "resolved", "Resolved"
        CLOSED = "closed", "Closed"

    # child records are frozen from here on
    LOCKED_STATES = {Status.NOTIFIED, Status.RESOLVED, Status.CLOSED}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="recalls")

    recall_code = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    recall_type = models.CharField(max_length=20, choices=RecallType.choices, default=RecallType.RECALL)
    severity = models.CharField(max_length=10, choices=Severity.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)

    reason = models.TextField()
    root_cause = models.TextField(blank=True, default="")
    corrective_actions = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    initiated_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    salsa_notified = models.BooleanField(default=False)
    salsa_notified_at = models.DateTimeField(null=True, blank=True)
    salsa_reference = models.CharField(max_length=128, blank=True, default="")
    fsa_notified = models.BooleanField(default=False)
    fsa_notified_at = models.DateTimeField(null=True, blank=True)
    fsa_reference = models.CharField(max_length=128, blank=True, default="")

    created_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["company", "status"]),
        ]
        constraints = [
            models.UniqueConstraint(fields=["company", "recall_code"], name="unique_recall_code_per_company"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            original = Recall.objects.only("severity").filter(pk=self.pk).first()
            if original is not None and original.severity and original.severity != self.severity:
                raise ValidationError({"severity": "severity is immutable once set"})
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def is_locked(self) -> bool:
        return self.status in self.LOCKED_STATES

    @property
    def notification_deadline(self):
        if self.initiated_at is None:
            return None
        return self.initiated_at + timedelta(days=int(traceability_setting("REGULATOR_NOTIFICATION_DAYS")))

    @property
    def is_notification_overdue(self) -> bool:
        """
        Read-time SLA check: not draft, SALSA not notified, and the
        notification window since initiation has passed.
        """
        if self.status == self.Status.DRAFT or self.salsa_notified:
            return False
        deadline = self.notification_deadline
        return deadline is not None and timezone.now() > deadline

    def __str__(self):
        return f"{self.recall_code} ({self.status})"


class RecallAffectedBatch(models.Model):
    class BatchType(models.TextChoices):
        RAW_MATERIAL = "raw_material", "Raw Material"
        FINISHED_PRODUCT = "finished_product", "Finished Product"
        REWORK = "rework", "Rework"

    class Action(models.TextChoices):
        PENDING = "pending", "Pending"
        QUARANTINED = "quarantined", "Quarantined"
        DESTROYED = "destroyed", "Destroyed"
        RETURNED = "returned", "Returned"
        RELEASED = "released", "Released"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recall = models.ForeignKey(Recall, on_delete=models.CASCADE, related_name="affected_batches")
    stock_batch = models.ForeignKey(StockBatch, on_delete=models.PROTECT, related_name="recall_links")

    batch_type = models.CharField(max_length=20, choices=BatchType.choices)
    quantity_affected = models.DecimalField(max_digits=14, decimal_places=3)
    quantity_recovered = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0"))
    unit = models.CharField(max_length=8, choices=UNIT_CHOICES)
    action_taken = models.CharField(max_length=20, choices=Action.choices, default=Action.PENDING)
    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(fields=["recall", "stock_batch"], name="unique_batch_per_recall"),
            models.CheckConstraint(
                condition=Q(quantity_affected__gte=0) & Q(quantity_recovered__gte=0),
                name="chk_affected_quantities_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_recovered__lte=F("quantity_affected")),
                name="chk_recovered_lte_affected",
            ),
        ]

    def clean(self):
        if self.quantity_affected is None or self.quantity_affected < 0:
            raise ValidationError({"quantity_affected": "quantity_affected cannot be negative"})
        if self.quantity_recovered is None or self.quantity_recovered < 0:
            raise ValidationError({"quantity_recovered": "quantity_recovered cannot be negative"})
        if self.quantity_recovered > self.quantity_affected:
            raise ValidationError({"quantity_recovered": "quantity_recovered cannot exceed quantity_affected"})

    def save(self, *args, **kwargs):
        self.full_clean(validate_unique=False, validate_constraints=False)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.recall.recall_code} / {self.stock_batch.batch_code}"


class RecallNotification(models.Model):
    class Method(models.TextChoices):
        EMAIL = "email", "Email"
        PHONE = "phone", "Phone"
        LETTER = "letter", "Letter"
        IN_PERSON = "in_person", "In Person"
        OTHER = "other", "Other"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recall = models.ForeignKey(Recall, on_delete=models.CASCADE, related_name="notifications")
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recall_notifications",
    )

    customer_name = models.CharField(max_length=255)
    contact_email = models.EmailField(blank=True, default="")
    contact_phone = models.CharField(max_length=40, blank=True, default="")
    notification_method = models.CharField(max_length=20, choices=Method.choices, default=Method.EMAIL)

    notified_at = models.DateTimeField(default=timezone.now)
    response_received = models.BooleanField(default=False)
    response_notes = models.TextField(blank=True, default="")
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["notified_at"]
        indexes = [
            models.Index(fields=["recall", "response_received"]),
        ]

    def clean(self):
        if not (self.customer_name or "").strip():
            raise ValidationError({"customer_name": "customer_name is required"})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.recall.recall_code} -> {self.customer_name} ({self.notification_method})"
