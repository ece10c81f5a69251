# production/urls.py

"""
PRODUCTION URLS

Registered under /api/production/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from production.views import ProductionBatchViewSet

router = DefaultRouter()
router.register(r"production-batches", ProductionBatchViewSet, basename="production-batches")

urlpatterns = [
    path("", include(router.urls)),
]
