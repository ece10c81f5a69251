from .exercise import TraceExerciseViewSet
from .trace import BackwardTraceView, ForwardTraceView

__all__ = [
    "BackwardTraceView",
    "ForwardTraceView",
    "TraceExerciseViewSet",
]
