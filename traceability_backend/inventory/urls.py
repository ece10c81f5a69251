# inventory/urls.py

"""
INVENTORY URLS

Registered under /api/inventory/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from inventory.views import (
    CompanyViewSet,
    CustomerViewSet,
    DeliveryViewSet,
    StockBatchViewSet,
    StockItemViewSet,
    SupplierViewSet,
)

router = DefaultRouter()

router.register(r"companies", CompanyViewSet, basename="companies")
router.register(r"suppliers", SupplierViewSet, basename="suppliers")
router.register(r"customers", CustomerViewSet, basename="customers")
router.register(r"stock-items", StockItemViewSet, basename="stock-items")
router.register(r"deliveries", DeliveryViewSet, basename="deliveries")
router.register(r"stock-batches", StockBatchViewSet, basename="stock-batches")

urlpatterns = [
    path("", include(router.urls)),
]
