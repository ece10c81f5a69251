from .trace_exercise import TraceExercise

__all__ = ["TraceExercise"]
