# inventory/apps.py

"""
INVENTORY APP CONFIG

Suppliers, deliveries, stock items, stock batches, the batch movement
ledger, customers and dispatches.
"""

from django.apps import AppConfig


class InventoryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"
    verbose_name = "Inventory"
