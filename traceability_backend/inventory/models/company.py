# inventory/models/company.py

import uuid

from django.db import models


class Company(models.Model):
    """
    Tenant scope.

    Batch codes, recall codes, suppliers and customers are unique per company.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name
