# production/serializers/__init__.py

from .production_batch import ProductionBatchInputSerializer, ProductionBatchSerializer

__all__ = [
    "ProductionBatchInputSerializer",
    "ProductionBatchSerializer",
]
