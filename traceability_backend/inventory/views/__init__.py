# inventory/views/__init__.py

"""
Inventory views package exports (router imports).
"""

from .catalog import CompanyViewSet, CustomerViewSet, StockItemViewSet, SupplierViewSet
from .delivery import DeliveryViewSet
from .stock_batch import StockBatchViewSet

__all__ = [
    "CompanyViewSet",
    "CustomerViewSet",
    "StockItemViewSet",
    "SupplierViewSet",
    "DeliveryViewSet",
    "StockBatchViewSet",
]
