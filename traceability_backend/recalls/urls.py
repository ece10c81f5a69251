# recalls/urls.py

"""
RECALLS URLS

Registered under /api/recalls/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from recalls.views import ReadinessView, RecallViewSet

router = DefaultRouter()
router.register(r"recalls", RecallViewSet, basename="recalls")

urlpatterns = [
    path("readiness/", ReadinessView.as_view(), name="recall-readiness"),
    path("", include(router.urls)),
]
