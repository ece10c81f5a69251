from .readiness import ReadinessView
from .recall import RecallViewSet

__all__ = ["ReadinessView", "RecallViewSet"]
