# inventory/models/customer.py

"""
CUSTOMERS + DISPATCHES (DOWNSTREAM DISTRIBUTION)

Dispatch is a distribution event, not a depletion event: it never touches
StockBatch.quantity_remaining. customer_name is denormalized so a dispatch
stays readable even if the customer row is later renamed or removed.
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from inventory.services.units import UNIT_CHOICES
from .company import Company
from .stock_batch import StockBatch


class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="customers")
    name = models.CharField(max_length=255)
    contact_email = models.EmailField(blank=True, default="")
    contact_phone = models.CharField(max_length=40, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["company", "name"], name="unique_customer_per_company"),
        ]

    def __str__(self):
        return self.name


class DispatchRecord(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    stock_batch = models.ForeignKey(StockBatch, on_delete=models.PROTECT, related_name="dispatches")
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="dispatches",
    )
    customer_name = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    unit = models.CharField(max_length=8, choices=UNIT_CHOICES)
    dispatch_date = models.DateField()
    reference = models.CharField(max_length=128, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["dispatch_date", "created_at"]
        indexes = [
            models.Index(fields=["stock_batch", "dispatch_date"]),
            models.Index(fields=["customer", "dispatch_date"]),
        ]

    def clean(self):
        if self.quantity is None or self.quantity <= 0:
            raise ValidationError({"quantity": "quantity must be greater than zero"})
        if not (self.customer_name or "").strip():
            raise ValidationError({"customer_name": "customer_name is required"})

    def save(self, *args, **kwargs):
        if self.customer_id and not (self.customer_name or "").strip():
            self.customer_name = self.customer.name
        self.full_clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.stock_batch} -> {self.customer_name} ({self.quantity} {self.unit})"
