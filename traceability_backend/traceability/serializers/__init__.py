from .trace import TraceExerciseSerializer, TraceQuerySerializer, StartExerciseSerializer

__all__ = [
    "TraceExerciseSerializer",
    "TraceQuerySerializer",
    "StartExerciseSerializer",
]
