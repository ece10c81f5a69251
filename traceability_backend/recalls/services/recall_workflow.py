# recalls/services/recall_workflow.py

"""
RECALL WORKFLOW ENGINE (APPLICATION SERVICE)

Purpose:
- Recall lifecycle transitions (validated by recall_lifecycle).
- Affected-batch registration, which quarantines the batch through
  inventory.services.batch_state.
- Customer notification tracking and regulator flags.

Rules:
- Every write locks the Recall row first, then the StockBatch row, so
  transitions and registrations on one recall are serialized.
- register_affected_batch() is idempotent per (recall, batch): the second
  call raises DuplicateBatchError and writes nothing.
- A batch that cannot be quarantined (depleted, destroyed, ...) is still
  registered; action_taken stays "pending" and the discrepancy is returned.
- Removing an affected batch does NOT release its quarantine.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from inventory.models import Customer, StockBatch
from inventory.services import batch_state
from inventory.services.exceptions import (
    DuplicateBatchError,
    InvalidTransitionError,
    NotFoundError,
)
from inventory.services.units import convert, normalize_quantity, quantize_quantity
from recalls.models import Recall, RecallAffectedBatch, RecallNotification
from recalls.services.recall_lifecycle import (
    assert_affected_editable,
    assert_can_register,
    validate_transition,
)
from traceability.conf import traceability_setting

logger = logging.getLogger(__name__)

Status = Recall.Status
Action = RecallAffectedBatch.Action

REFERENCE_TYPE = "recall"
QUARANTINE_REASON = "recall quarantine"

REGULATORS = ("salsa", "fsa")


@dataclass(frozen=True)
class RegistrationResult:
    affected_batch: RecallAffectedBatch
    quarantined: bool
    discrepancy: str = ""


# ============================================================
# HELPERS
# ============================================================

def _lock_recall(recall_id) -> Recall:
    pk = getattr(recall_id, "pk", recall_id)
    try:
        return Recall.objects.select_for_update().get(pk=pk)
    except (Recall.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("Recall", pk)


def _get_affected(recall: Recall, affected_batch_id) -> RecallAffectedBatch:
    pk = getattr(affected_batch_id, "pk", affected_batch_id)
    try:
        return (
            RecallAffectedBatch.objects.select_for_update()
            .select_related("stock_batch")
            .get(pk=pk, recall=recall)
        )
    except (RecallAffectedBatch.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("RecallAffectedBatch", pk)


def _infer_batch_type(batch: StockBatch) -> str:
    if batch.production_batch_id:
        return RecallAffectedBatch.BatchType.FINISHED_PRODUCT
    return RecallAffectedBatch.BatchType.RAW_MATERIAL


def _assert_open(recall: Recall) -> None:
    if recall.status == Status.CLOSED:
        raise InvalidTransitionError(f"Recall {recall.recall_code} is closed")


# ============================================================
# RECALL LIFECYCLE
# ============================================================

@transaction.atomic
def create_recall(
    *,
    company,
    title: str,
    severity: str,
    reason: str,
    recall_code: str | None = None,
    recall_type: str = Recall.RecallType.RECALL,
    status: str = Status.DRAFT,
    notes: str = "",
    created_by: str = "",
) -> Recall:
    if status not in (Status.DRAFT, Status.ACTIVE):
        raise ValidationError("A recall starts as draft or active")

    code = (recall_code or "").strip() or f"REC-{uuid.uuid4().hex[:6].upper()}"

    try:
        with transaction.atomic():
            recall = Recall.objects.create(
                company=company,
                recall_code=code,
                title=title,
                recall_type=recall_type,
                severity=severity,
                status=status,
                reason=reason,
                notes=notes or "",
                initiated_at=timezone.now() if status == Status.ACTIVE else None,
                created_by=created_by or "",
            )
    except IntegrityError as exc:
        raise ValidationError(f"Recall code {code} already exists for this company") from exc

    logger.warning(
        "Recall created",
        extra={"recall_code": recall.recall_code, "severity": recall.severity, "status": recall.status},
    )
    return recall


@transaction.atomic
def transition_recall(recall_id, *, target_status: str, performed_by: str = "") -> Recall:
    recall = _lock_recall(recall_id)
    validate_transition(recall=recall, target_status=target_status)

    if target_status == Status.RESOLVED and traceability_setting("RECALL_REQUIRE_RESPONSES_TO_RESOLVE"):
        waiting = recall.notifications.filter(response_received=False).count()
        if waiting:
            raise InvalidTransitionError(
                f"Recall {recall.recall_code} cannot be resolved: {waiting} notification(s) have no response"
            )

    now = timezone.now()
    from_status = recall.status
    recall.status = target_status

    if from_status == Status.DRAFT and recall.initiated_at is None:
        recall.initiated_at = now
    if target_status == Status.RESOLVED:
        recall.resolved_at = now
    if target_status == Status.CLOSED:
        recall.closed_at = now

    recall.save()

    logger.info(
        "Recall transitioned",
        extra={
            "recall_code": recall.recall_code,
            "from_status": from_status,
            "to_status": target_status,
            "performed_by": performed_by,
        },
    )
    return recall


@transaction.atomic
def update_investigation(
    recall_id,
    *,
    root_cause: str | None = None,
    corrective_actions: str | None = None,
    notes: str | None = None,
) -> Recall:
    recall = _lock_recall(recall_id)
    _assert_open(recall)

    if root_cause is not None:
        recall.root_cause = root_cause
    if corrective_actions is not None:
        recall.corrective_actions = corrective_actions
    if notes is not None:
        recall.notes = notes

    recall.save()
    return recall


@transaction.atomic
def mark_regulator_notified(recall_id, *, regulator: str, reference: str = "", notified_at=None) -> Recall:
    """
    Record that SALSA or the FSA was told. The first timestamp is kept;
    a repeat call only updates the reference.
    """
    regulator = (regulator or "").strip().lower()
    if regulator not in REGULATORS:
        raise ValidationError(f"regulator must be one of {', '.join(REGULATORS)}")

    recall = _lock_recall(recall_id)
    if recall.status == Status.DRAFT:
        raise InvalidTransitionError(f"Recall {recall.recall_code} is still a draft")

    if not getattr(recall, f"{regulator}_notified"):
        setattr(recall, f"{regulator}_notified", True)
        setattr(recall, f"{regulator}_notified_at", notified_at or timezone.now())
    if reference:
        setattr(recall, f"{regulator}_reference", reference)

    recall.save()
    logger.info("Regulator notified", extra={"recall_code": recall.recall_code, "regulator": regulator})
    return recall


def is_notification_overdue(recall: Recall) -> bool:
    return recall.is_notification_overdue


# ============================================================
# AFFECTED BATCHES
# ============================================================

@transaction.atomic
def register_affected_batch(
    *,
    recall_id,
    stock_batch_id,
    batch_type: str | None = None,
    quantity_affected=None,
    unit: str | None = None,
    notes: str = "",
    performed_by: str = "",
) -> RegistrationResult:
    """
    Register a batch to a recall and quarantine it, in one transaction.

    Raises DuplicateBatchError when the pair already exists.
    """
    recall = _lock_recall(recall_id)
    assert_can_register(recall)

    batch = batch_state.lock_batch(stock_batch_id)
    if batch.company_id != recall.company_id:
        raise ValidationError("stock batch and recall must belong to the same company")

    if RecallAffectedBatch.objects.filter(recall=recall, stock_batch=batch).exists():
        raise DuplicateBatchError(f"Batch {batch.batch_code} is already registered to recall {recall.recall_code}")

    if quantity_affected in (None, ""):
        quantity = batch.quantity_received
    else:
        quantity = normalize_quantity(quantity_affected, field_name="quantity_affected")
        if unit and unit != batch.unit:
            quantity = convert(quantity, unit, batch.unit).quantity
    quantity = quantize_quantity(quantity)

    try:
        with transaction.atomic():
            affected = RecallAffectedBatch.objects.create(
                recall=recall,
                stock_batch=batch,
                batch_type=batch_type or _infer_batch_type(batch),
                quantity_affected=quantity,
                unit=batch.unit,
                action_taken=Action.PENDING,
                notes=notes or "",
            )
    except IntegrityError as exc:
        raise DuplicateBatchError(
            f"Batch {batch.batch_code} is already registered to recall {recall.recall_code}"
        ) from exc

    outcome = batch_state.quarantine(
        batch.id,
        quantity=quantity,
        reason=QUARANTINE_REASON,
        reference_type=REFERENCE_TYPE,
        reference_id=recall.id,
        performed_by=performed_by,
    )
    affected.stock_batch = outcome.batch

    quarantined = outcome.applied or outcome.batch.status == StockBatch.Status.QUARANTINED
    discrepancy = ""
    if quarantined:
        affected.action_taken = Action.QUARANTINED
        affected.save(update_fields=["action_taken", "updated_at"])
    else:
        discrepancy = outcome.detail
        logger.warning(
            "Affected batch left pending",
            extra={"recall_code": recall.recall_code, "batch_code": batch.batch_code, "status": outcome.batch.status},
        )

    logger.info(
        "Affected batch registered",
        extra={
            "recall_code": recall.recall_code,
            "batch_code": batch.batch_code,
            "quantity": str(quantity),
            "action_taken": affected.action_taken,
        },
    )
    return RegistrationResult(affected_batch=affected, quarantined=quarantined, discrepancy=discrepancy)


@transaction.atomic
def remove_affected_batch(*, recall_id, affected_batch_id, performed_by: str = "") -> None:
    recall = _lock_recall(recall_id)
    assert_affected_editable(recall)

    affected = _get_affected(recall, affected_batch_id)
    batch_code = affected.stock_batch.batch_code
    affected.delete()

    logger.info(
        "Affected batch removed (quarantine kept)",
        extra={"recall_code": recall.recall_code, "batch_code": batch_code, "performed_by": performed_by},
    )


@transaction.atomic
def set_affected_batch_action(
    *,
    recall_id,
    affected_batch_id,
    action: str | None = None,
    quantity_recovered=None,
    notes: str | None = None,
    performed_by: str = "",
) -> RecallAffectedBatch:
    """
    Record the disposition of an affected batch.

    destroyed / returned / released / quarantined go through the batch state
    machine; quantity_recovered must stay within quantity_affected.
    """
    recall = _lock_recall(recall_id)
    _assert_open(recall)
    affected = _get_affected(recall, affected_batch_id)

    if quantity_recovered not in (None, ""):
        recovered = quantize_quantity(normalize_quantity(quantity_recovered, field_name="quantity_recovered"))
        if recovered > affected.quantity_affected:
            raise ValidationError(
                f"quantity_recovered ({recovered}) cannot exceed quantity_affected ({affected.quantity_affected})"
            )
        affected.quantity_recovered = recovered

    if notes is not None:
        affected.notes = notes

    if action and action != affected.action_taken:
        state_kwargs = {
            "reference_type": REFERENCE_TYPE,
            "reference_id": recall.id,
            "performed_by": performed_by,
        }
        batch_id = affected.stock_batch_id

        if action == Action.DESTROYED:
            batch_state.destroy(batch_id, reason=f"destroyed under recall {recall.recall_code}", **state_kwargs)
        elif action == Action.RETURNED:
            batch_state.mark_returned(batch_id, reason=f"returned under recall {recall.recall_code}", **state_kwargs)
        elif action == Action.RELEASED:
            batch_state.release(batch_id, reason=f"released from recall {recall.recall_code}", **state_kwargs)
        elif action == Action.QUARANTINED:
            outcome = batch_state.quarantine(batch_id, reason=QUARANTINE_REASON, **state_kwargs)
            if not (outcome.applied or outcome.batch.status == StockBatch.Status.QUARANTINED):
                raise InvalidTransitionError(outcome.detail)
        else:
            raise ValidationError(f"Unsupported action: {action}")

        affected.action_taken = action

    affected.save()

    logger.info(
        "Affected batch updated",
        extra={
            "recall_code": recall.recall_code,
            "batch_code": affected.stock_batch.batch_code,
            "action_taken": affected.action_taken,
            "quantity_recovered": str(affected.quantity_recovered),
        },
    )
    return affected


# ============================================================
# NOTIFICATIONS
# ============================================================

@transaction.atomic
def record_notification(
    *,
    recall_id,
    customer_name: str = "",
    customer=None,
    notification_method: str = RecallNotification.Method.EMAIL,
    contact_email: str = "",
    contact_phone: str = "",
) -> RecallNotification:
    """Append-only; notified_at is the moment the notification is recorded."""
    recall = _lock_recall(recall_id)
    _assert_open(recall)

    if customer is not None and not isinstance(customer, Customer):
        try:
            customer = Customer.objects.get(pk=customer)
        except (Customer.DoesNotExist, ValidationError, ValueError):
            raise NotFoundError("Customer", customer)

    if customer is not None:
        if customer.company_id != recall.company_id:
            raise ValidationError("customer and recall must belong to the same company")
        customer_name = customer_name or customer.name
        contact_email = contact_email or customer.contact_email
        contact_phone = contact_phone or customer.contact_phone

    notification = RecallNotification.objects.create(
        recall=recall,
        customer=customer,
        customer_name=(customer_name or "").strip(),
        contact_email=contact_email or "",
        contact_phone=contact_phone or "",
        notification_method=notification_method,
        notified_at=timezone.now(),
    )

    logger.info(
        "Recall notification recorded",
        extra={"recall_code": recall.recall_code, "customer_name": notification.customer_name},
    )
    return notification


@transaction.atomic
def record_response(*, recall_id, notification_id, response_notes: str = "") -> RecallNotification:
    recall = _lock_recall(recall_id)
    _assert_open(recall)

    pk = getattr(notification_id, "pk", notification_id)
    try:
        notification = RecallNotification.objects.select_for_update().get(pk=pk, recall=recall)
    except (RecallNotification.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("RecallNotification", pk)

    notification.response_received = True
    notification.response_notes = response_notes or notification.response_notes
    if notification.responded_at is None:
        notification.responded_at = timezone.now()
    notification.save()
    return notification
