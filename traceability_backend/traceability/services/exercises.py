# traceability/services/exercises.py

"""
MOCK RECALL EXERCISES

start_exercise() opens the clock; complete_exercise() runs the backward
and forward traces for the batch, stores the node counts and stops the
clock. A completed exercise is never re-run.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from inventory.services.exceptions import InvalidTransitionError, NotFoundError
from traceability.models import TraceExercise
from traceability.services.graph_builder import trace_backward, trace_forward
from traceability.services.resolver import load_batch

logger = logging.getLogger(__name__)


@transaction.atomic
def start_exercise(*, batch_id, started_by: str = "") -> TraceExercise:
    batch = load_batch(getattr(batch_id, "pk", batch_id))
    exercise = TraceExercise.objects.create(
        company_id=batch.company_id,
        stock_batch=batch,
        started_by=started_by or "",
    )
    logger.info("Mock recall exercise started", extra={"exercise_id": str(exercise.id), "batch_code": batch.batch_code})
    return exercise


@transaction.atomic
def complete_exercise(exercise_id) -> TraceExercise:
    pk = getattr(exercise_id, "pk", exercise_id)
    exercise = TraceExercise.objects.select_for_update().filter(pk=pk).first()
    if exercise is None:
        raise NotFoundError("TraceExercise", pk)
    if exercise.completed_at is not None:
        raise InvalidTransitionError("Exercise is already completed")

    backward = trace_backward(exercise.stock_batch_id)
    forward = trace_forward(exercise.stock_batch_id)

    exercise.backward_node_count = len(backward.nodes)
    exercise.forward_node_count = len(forward.nodes)
    exercise.completed_at = timezone.now()
    exercise.save(update_fields=["backward_node_count", "forward_node_count", "completed_at"])

    logger.info(
        "Mock recall exercise completed",
        extra={
            "exercise_id": str(exercise.id),
            "elapsed_seconds": int(exercise.elapsed.total_seconds()),
            "within_target": exercise.within_target,
        },
    )
    return exercise
