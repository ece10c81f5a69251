"""
PATH: inventory/models/__init__.py

Inventory models export surface.
"""

from .company import Company
from .supplier import Supplier, Delivery, DeliveryLine
from .stock_item import StockItem
from .stock_batch import StockBatch
from .batch_movement import BatchMovement
from .customer import Customer, DispatchRecord

__all__ = [
    "Company",
    "Supplier",
    "Delivery",
    "DeliveryLine",
    "StockItem",
    "StockBatch",
    "BatchMovement",
    "Customer",
    "DispatchRecord",
]
