# inventory/models/stock_batch.py

"""
STOCK BATCH (TRACEABLE UNIT OF MATERIAL OR PRODUCT)

CANONICAL MODEL:
- StockBatch = one traceable quantity sharing one code, one provenance, one status
- batch_code is unique per company
- quantity_received is immutable after creation
- quantity_remaining is mutated ONLY via inventory.services.batch_state
- status is mutated ONLY via inventory.services.batch_state

PROVENANCE (central lineage invariant):
- exactly one of delivery_line (externally sourced) or production_batch
  (internally produced) is set. Never both, never neither.
- This is what lets the lineage resolver decide, per node, whether to look
  for a supplier or a production run.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from inventory.services.units import UNIT_CHOICES, normalize_allergens
from .company import Company
from .stock_item import StockItem
from .supplier import DeliveryLine


class StockBatch(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        DEPLETED = "depleted", "Depleted"
        QUARANTINED = "quarantined", "Quarantined"
        EXPIRED = "expired", "Expired"
        DESTROYED = "destroyed", "Destroyed"
        RETURNED = "returned", "Returned"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="stock_batches")
    stock_item = models.ForeignKey(StockItem, on_delete=models.PROTECT, related_name="stock_batches")

    batch_code = models.CharField(max_length=128, help_text="Human-readable batch code (unique per company)")

    quantity_received = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        help_text="Quantity received or produced (immutable)",
    )
    quantity_remaining = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        help_text="Remaining quantity (service-managed only)",
    )
    unit = models.CharField(max_length=8, choices=UNIT_CHOICES)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    use_by_date = models.DateField(null=True, blank=True)
    best_before_date = models.DateField(null=True, blank=True)

    allergens = models.JSONField(default=list, blank=True)

    # Provenance: exactly one of these is set
    delivery_line = models.OneToOneField(
        DeliveryLine,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_batch",
    )
    production_batch = models.ForeignKey(
        "production.ProductionBatch",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="output_batches",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["company", "status"]),
            models.Index(fields=["stock_item", "status"]),
            models.Index(fields=["use_by_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "batch_code"],
                name="unique_batch_code_per_company",
            ),
            models.CheckConstraint(
                condition=Q(quantity_received__gte=0),
                name="chk_stockbatch_qty_received_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__gte=0),
                name="chk_stockbatch_qty_remaining_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__lte=F("quantity_received")),
                name="chk_stockbatch_remaining_lte_received",
            ),
            models.CheckConstraint(
                condition=(
                    Q(delivery_line__isnull=False, production_batch__isnull=True)
                    | Q(delivery_line__isnull=True, production_batch__isnull=False)
                ),
                name="chk_stockbatch_exactly_one_provenance",
            ),
        ]

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def clean(self):
        if self.quantity_received is None or self.quantity_received < Decimal("0"):
            raise ValidationError({"quantity_received": "quantity_received cannot be negative"})

        if self.quantity_remaining is None or self.quantity_remaining < Decimal("0"):
            raise ValidationError({"quantity_remaining": "quantity_remaining cannot be negative"})

        if self.quantity_remaining > self.quantity_received:
            raise ValidationError(
                {"quantity_remaining": "quantity_remaining cannot exceed quantity_received"}
            )

        has_delivery = self.delivery_line_id is not None
        has_production = self.production_batch_id is not None
        if has_delivery == has_production:
            raise ValidationError(
                "StockBatch must have exactly one provenance: delivery_line or production_batch"
            )

        if not isinstance(self.allergens, list):
            raise ValidationError({"allergens": "allergens must be a list"})

        if self.stock_item_id and self.company_id and self.stock_item.company_id != self.company_id:
            raise ValidationError({"stock_item": "stock_item must belong to the batch company"})

    # -------------------------------------------------
    # IMMUTABILITY
    # -------------------------------------------------

    def save(self, *args, **kwargs):
        if not self._state.adding:
            original = StockBatch.objects.only("quantity_received").get(pk=self.pk)
            if self.quantity_received != original.quantity_received:
                raise ValidationError({"quantity_received": "quantity_received is immutable"})

        # keep allergens a sorted, de-duplicated list
        if self.allergens is None:
            self.allergens = []
        if isinstance(self.allergens, (list, tuple, set)):
            self.allergens = normalize_allergens(self.allergens)

        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """
        Audit safety: once a batch has movements, it must never be deleted.
        """
        from inventory.models.batch_movement import BatchMovement

        if BatchMovement.objects.filter(batch=self).exists():
            raise ValidationError("Cannot delete StockBatch: it has movement audit history.")
        return super().delete(*args, **kwargs)

    # -------------------------------------------------
    # READ-ONLY HELPERS
    # -------------------------------------------------

    @property
    def is_produced(self) -> bool:
        return self.production_batch_id is not None

    @property
    def is_delivered(self) -> bool:
        return self.delivery_line_id is not None

    @property
    def provenance(self) -> str:
        return "production" if self.is_produced else "delivery"

    def __str__(self):
        item_name = getattr(self.stock_item, "name", "Item")
        return f"{self.batch_code} | {item_name}"
