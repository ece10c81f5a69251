# inventory/models/supplier.py

"""
SUPPLIER + DELIVERY (EXTERNAL PROVENANCE)

- Supplier is the leaf of every backward trace.
- Delivery = one supplier delivering on one date.
- DeliveryLine links a delivery to the stock batch it created
  (StockBatch.delivery_line is the one-to-one owner of the link).
"""

import uuid

from django.db import models

from .company import Company


class Supplier(models.Model):
    class ApprovalStatus(models.TextChoices):
        APPROVED = "approved", "Approved"
        PENDING = "pending", "Pending Approval"
        SUSPENDED = "suspended", "Suspended"
        REJECTED = "rejected", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="suppliers")
    name = models.CharField(max_length=255)
    approval_status = models.CharField(
        max_length=20,
        choices=ApprovalStatus.choices,
        default=ApprovalStatus.PENDING,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["company", "name"], name="unique_supplier_per_company"),
        ]

    @property
    def is_approved(self) -> bool:
        return self.approval_status == self.ApprovalStatus.APPROVED

    def __str__(self):
        return self.name


class Delivery(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name="deliveries")
    delivery_date = models.DateField()
    reference = models.CharField(max_length=128, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-delivery_date", "-created_at"]
        indexes = [
            models.Index(fields=["supplier", "delivery_date"]),
        ]
        verbose_name_plural = "deliveries"

    def __str__(self):
        return f"{self.supplier} | {self.delivery_date}"


class DeliveryLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    delivery = models.ForeignKey(Delivery, on_delete=models.PROTECT, related_name="lines")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"Line of {self.delivery}"
