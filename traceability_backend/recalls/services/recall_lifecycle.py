"""
RECALL LIFECYCLE DOMAIN RULES

The ONLY allowed status moves for a Recall:

    draft → active → investigating → notified → resolved → closed
    active / investigating → closed   (withdrawal resolved without escalation)

DESIGN PRINCIPLES:
- Forward only
- No database writes
- No side effects
"""

from inventory.services.exceptions import InvalidTransitionError
from recalls.models import Recall

Status = Recall.Status

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Status.CLOSED,
}

ALLOWED_TRANSITIONS = {
    Status.DRAFT: {
        Status.ACTIVE,
    },
    Status.ACTIVE: {
        Status.INVESTIGATING,
        Status.CLOSED,
    },
    Status.INVESTIGATING: {
        Status.NOTIFIED,
        Status.CLOSED,
    },
    Status.NOTIFIED: {
        Status.RESOLVED,
    },
    Status.RESOLVED: {
        Status.CLOSED,
    },
}

# states in which batches may still be registered / removed
REGISTRATION_STATES = {
    Status.DRAFT,
    Status.ACTIVE,
    Status.INVESTIGATING,
    Status.NOTIFIED,
}

EDITABLE_AFFECTED_STATES = {
    Status.DRAFT,
    Status.ACTIVE,
    Status.INVESTIGATING,
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, recall: Recall, target_status: str):
    if not can_transition(from_status=recall.status, to_status=target_status):
        raise InvalidTransitionError(
            f"Recall {recall.recall_code} cannot transition from '{recall.status}' to '{target_status}'"
        )


def assert_can_register(recall: Recall):
    if recall.status not in REGISTRATION_STATES:
        raise InvalidTransitionError(
            f"Recall {recall.recall_code} is '{recall.status}'; no further batches can be registered"
        )


def assert_affected_editable(recall: Recall):
    if recall.status not in EDITABLE_AFFECTED_STATES:
        raise InvalidTransitionError(
            f"Recall {recall.recall_code} is '{recall.status}'; affected batches can no longer be removed"
        )


def allowed_targets(recall: Recall) -> list[str]:
    return sorted(ALLOWED_TRANSITIONS.get(recall.status, set()))
