# inventory/serializers/__init__.py

from .catalog import CompanySerializer, CustomerSerializer, StockItemSerializer, SupplierSerializer
from .stock_batch import (
    BatchMovementSerializer,
    DeliverySerializer,
    DispatchRecordSerializer,
    StockBatchSerializer,
)

__all__ = [
    "CompanySerializer",
    "CustomerSerializer",
    "StockItemSerializer",
    "SupplierSerializer",
    "BatchMovementSerializer",
    "DeliverySerializer",
    "DispatchRecordSerializer",
    "StockBatchSerializer",
]
