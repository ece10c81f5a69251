# production/views/__init__.py

from .production_batch import ProductionBatchViewSet

__all__ = ["ProductionBatchViewSet"]
