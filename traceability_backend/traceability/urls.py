# traceability/urls.py

"""
TRACEABILITY URLS

Registered under /api/traceability/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from traceability.views import BackwardTraceView, ForwardTraceView, TraceExerciseViewSet

router = DefaultRouter()
router.register(r"exercises", TraceExerciseViewSet, basename="trace-exercises")

urlpatterns = [
    path("backward/", BackwardTraceView.as_view(), name="trace-backward"),
    path("forward/", ForwardTraceView.as_view(), name="trace-forward"),
    path("", include(router.urls)),
]
