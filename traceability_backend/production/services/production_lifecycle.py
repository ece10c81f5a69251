"""
PRODUCTION BATCH LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for ProductionBatch entities.

DESIGN PRINCIPLES:
- No database writes
- No stock mutation
- No side effects
- Single source of truth
"""

from inventory.services.exceptions import InvalidTransitionError
from production.models import ProductionBatch


Status = ProductionBatch.Status

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Status.COMPLETED,
    Status.CANCELLED,
}

ALLOWED_TRANSITIONS = {
    Status.PLANNED: {
        Status.IN_PROGRESS,
        Status.CANCELLED,
    },
    Status.IN_PROGRESS: {
        Status.COMPLETED,
        Status.CANCELLED,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, production_batch: ProductionBatch, target_status: str):
    if not can_transition(
        from_status=production_batch.status,
        to_status=target_status,
    ):
        raise InvalidTransitionError(
            f"Production batch {production_batch.batch_code} cannot transition from "
            f"'{production_batch.status}' to '{target_status}'"
        )


def assert_inputs_editable(production_batch: ProductionBatch):
    if production_batch.status in TERMINAL_STATES:
        raise InvalidTransitionError(
            f"Production batch {production_batch.batch_code} is '{production_batch.status}'; "
            "its inputs and outputs are locked"
        )
