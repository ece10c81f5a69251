"""
STOCK BATCH LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed status transitions
for StockBatch entities.

DESIGN PRINCIPLES:
- No database writes
- No stock mutation
- No side effects
- Single source of truth
"""

from inventory.models.stock_batch import StockBatch
from inventory.services.exceptions import InvalidTransitionError


Status = StockBatch.Status

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Status.DEPLETED,
    Status.DESTROYED,
    Status.RETURNED,
}

ALLOWED_TRANSITIONS = {
    Status.ACTIVE: {
        Status.DEPLETED,
        Status.QUARANTINED,
        Status.EXPIRED,
    },
    Status.QUARANTINED: {
        Status.DESTROYED,
        Status.RETURNED,
        Status.ACTIVE,  # release
    },
    Status.EXPIRED: {
        Status.DESTROYED,
    },
}

# Consumption reversal is the only way back out of DEPLETED.
REVERSIBLE_STATES = {
    Status.DEPLETED: Status.ACTIVE,
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, batch: StockBatch, target_status: str):
    if not can_transition(from_status=batch.status, to_status=target_status):
        raise InvalidTransitionError(
            f"Batch {batch.batch_code} cannot transition from "
            f"'{batch.status}' to '{target_status}'"
        )


def can_consume(batch: StockBatch) -> bool:
    return batch.status == Status.ACTIVE


def can_dispatch(batch: StockBatch) -> bool:
    # quarantined / expired / written-off stock must not leave the site
    return batch.status in {Status.ACTIVE, Status.DEPLETED}
