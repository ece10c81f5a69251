# inventory/models/stock_item.py

import uuid

from django.db import models

from inventory.services.units import UNIT_CHOICES
from .company import Company


class StockItem(models.Model):
    class ItemType(models.TextChoices):
        RAW_MATERIAL = "raw_material", "Raw Material"
        INTERMEDIATE = "intermediate", "Intermediate"
        FINISHED_PRODUCT = "finished_product", "Finished Product"
        PACKAGING = "packaging", "Packaging"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="stock_items")
    name = models.CharField(max_length=255)
    item_type = models.CharField(
        max_length=20,
        choices=ItemType.choices,
        default=ItemType.RAW_MATERIAL,
    )
    unit = models.CharField(max_length=8, choices=UNIT_CHOICES, default="kg")
    allergens = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["company", "name"], name="unique_stock_item_per_company"),
        ]

    def __str__(self):
        return self.name
