"""
PATH: production/models/__init__.py

Production models export surface.
"""

from .production_batch import ProductionBatch, ProductionBatchInput

__all__ = [
    "ProductionBatch",
    "ProductionBatchInput",
]
