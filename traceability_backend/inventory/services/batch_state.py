# inventory/services/batch_state.py

"""
BATCH STATE MACHINE (SERVICE LAYER)

Purpose:
- The ONLY place that mutates StockBatch.quantity_remaining and StockBatch.status.
- Every mutation writes an immutable BatchMovement row.

Rules:
- Every mutation locks the batch row (select_for_update) inside a transaction,
  so concurrent consumption from two production runs cannot lose an update:
  remaining = received - sum(committed consumptions) + sum(reversals).
- consume() is bounds-checked BEFORE anything is persisted and flips the batch
  to DEPLETED exactly at zero.
- quarantine() is idempotent: any state other than ACTIVE is a no-op, not an error.
- Transitions are validated against inventory.services.batch_lifecycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from inventory.models import BatchMovement, StockBatch
from inventory.services.batch_lifecycle import (
    REVERSIBLE_STATES,
    can_consume,
    validate_transition,
)
from inventory.services.exceptions import (
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
)
from inventory.services.units import convert, normalize_quantity, quantize_quantity

logger = logging.getLogger(__name__)

Status = StockBatch.Status
MovementType = BatchMovement.MovementType


@dataclass(frozen=True)
class StockChange:
    batch: StockBatch
    movement: BatchMovement | None
    quantity: Decimal


@dataclass(frozen=True)
class QuarantineOutcome:
    batch: StockBatch
    applied: bool
    movement: BatchMovement | None = None
    detail: str = ""


# ============================================================
# HELPERS
# ============================================================

def lock_batch(batch_or_id) -> StockBatch:
    """
    Re-read a batch under a row lock.
    Must be called inside transaction.atomic.
    """
    batch_id = getattr(batch_or_id, "pk", batch_or_id)
    try:
        return (
            StockBatch.objects.select_for_update()
            .select_related("stock_item")
            .get(pk=batch_id)
        )
    except (StockBatch.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("StockBatch", batch_id)


def record_movement(
    *,
    batch: StockBatch,
    movement_type: str,
    quantity,
    reason: str = "",
    reference_type: str = "",
    reference_id="",
    performed_by: str = "",
) -> BatchMovement:
    return BatchMovement.objects.create(
        batch=batch,
        movement_type=movement_type,
        quantity=quantize_quantity(quantity),
        unit=batch.unit,
        reason=(reason or "")[:255],
        reference_type=reference_type or "",
        reference_id=str(reference_id or ""),
        performed_by=performed_by or "",
    )


def _to_batch_unit(batch: StockBatch, quantity, unit: str | None) -> Decimal:
    qty = normalize_quantity(quantity, allow_zero=False)
    if unit and unit != batch.unit:
        qty = convert(qty, unit, batch.unit).quantity
    qty = quantize_quantity(qty)
    if qty <= 0:
        raise ValidationError(
            f"{quantity} {unit} rounds to zero in {batch.unit} for batch {batch.batch_code}"
        )
    return qty


def _set_status(batch: StockBatch, target_status: str) -> None:
    validate_transition(batch=batch, target_status=target_status)
    batch.status = target_status


# ============================================================
# CONSUMPTION
# ============================================================

@transaction.atomic
def consume(
    batch_id,
    quantity,
    unit: str | None = None,
    *,
    reason: str = "production consumption",
    reference_type: str = "",
    reference_id="",
    performed_by: str = "",
) -> StockChange:
    """
    Decrement a batch by `quantity` (expressed in `unit`, defaults to batch unit).

    Raises:
    - IncompatibleUnitsError if `unit` cannot be converted to the batch unit
    - InvalidTransitionError if the batch is not ACTIVE
    - InsufficientStockError if quantity exceeds remaining
    """
    batch = lock_batch(batch_id)
    qty = _to_batch_unit(batch, quantity, unit)

    if not can_consume(batch):
        raise InvalidTransitionError(
            f"Batch {batch.batch_code} is '{batch.status}' and cannot be consumed"
        )

    remaining = batch.quantity_remaining
    if qty > remaining:
        raise InsufficientStockError(batch.batch_code, qty, remaining, batch.unit)

    batch.quantity_remaining = remaining - qty
    update_fields = ["quantity_remaining", "updated_at"]

    if batch.quantity_remaining == 0:
        _set_status(batch, Status.DEPLETED)
        update_fields.append("status")

    batch.save(update_fields=update_fields)

    movement = record_movement(
        batch=batch,
        movement_type=MovementType.CONSUMED,
        quantity=qty,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by=performed_by,
    )

    logger.info(
        "Batch consumed",
        extra={
            "batch_code": batch.batch_code,
            "quantity": str(qty),
            "remaining": str(batch.quantity_remaining),
            "status": batch.status,
        },
    )
    return StockChange(batch=batch, movement=movement, quantity=qty)


@transaction.atomic
def restore_consumption(
    batch_id,
    quantity,
    unit: str | None = None,
    *,
    reason: str = "consumption reversed",
    reference_type: str = "",
    reference_id="",
    performed_by: str = "",
) -> StockChange:
    """
    Re-add a previously consumed quantity (e.g. an input record was deleted).

    DEPLETED flips back to ACTIVE. Other states keep their status.
    Written-off batches (destroyed / returned) cannot be restored.
    """
    batch = lock_batch(batch_id)
    qty = _to_batch_unit(batch, quantity, unit)

    if batch.status in {Status.DESTROYED, Status.RETURNED}:
        raise InvalidTransitionError(
            f"Batch {batch.batch_code} is '{batch.status}'; consumption cannot be restored"
        )

    restored = batch.quantity_remaining + qty
    if restored > batch.quantity_received:
        raise ValidationError(
            f"Cannot restore {qty} {batch.unit} to batch {batch.batch_code}: "
            f"remaining would exceed quantity received ({batch.quantity_received})"
        )

    batch.quantity_remaining = restored
    update_fields = ["quantity_remaining", "updated_at"]

    if batch.status in REVERSIBLE_STATES:
        batch.status = REVERSIBLE_STATES[batch.status]
        update_fields.append("status")

    batch.save(update_fields=update_fields)

    movement = record_movement(
        batch=batch,
        movement_type=MovementType.CONSUMPTION_REVERSED,
        quantity=qty,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by=performed_by,
    )
    return StockChange(batch=batch, movement=movement, quantity=qty)


# ============================================================
# QUARANTINE / RELEASE
# ============================================================

@transaction.atomic
def quarantine(
    batch_id,
    *,
    quantity=None,
    reason: str = "quarantine",
    reference_type: str = "",
    reference_id="",
    performed_by: str = "",
) -> QuarantineOutcome:
    """
    Move an ACTIVE batch to QUARANTINED.

    Any other state is a no-op (applied=False), never an error, so recall
    registration can be retried safely.
    """
    batch = lock_batch(batch_id)

    if batch.status != Status.ACTIVE:
        logger.info(
            "Quarantine skipped",
            extra={"batch_code": batch.batch_code, "status": batch.status},
        )
        return QuarantineOutcome(
            batch=batch,
            applied=False,
            detail=f"Batch {batch.batch_code} is '{batch.status}' and was not quarantined",
        )

    _set_status(batch, Status.QUARANTINED)
    batch.save(update_fields=["status", "updated_at"])

    movement_qty = batch.quantity_remaining if quantity is None else normalize_quantity(quantity)
    movement = record_movement(
        batch=batch,
        movement_type=MovementType.QUARANTINED,
        quantity=movement_qty,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by=performed_by,
    )

    logger.warning(
        "Batch quarantined",
        extra={"batch_code": batch.batch_code, "reference_type": reference_type, "reference_id": str(reference_id)},
    )
    return QuarantineOutcome(batch=batch, applied=True, movement=movement)


@transaction.atomic
def release(
    batch_id,
    *,
    reason: str = "released from quarantine",
    reference_type: str = "",
    reference_id="",
    performed_by: str = "",
) -> StockChange:
    batch = lock_batch(batch_id)
    _set_status(batch, Status.ACTIVE)
    batch.save(update_fields=["status", "updated_at"])

    movement = record_movement(
        batch=batch,
        movement_type=MovementType.RELEASED,
        quantity=batch.quantity_remaining,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by=performed_by,
    )
    return StockChange(batch=batch, movement=movement, quantity=batch.quantity_remaining)


# ============================================================
# WRITE-OFFS
# ============================================================

def _write_off(
    batch_id,
    *,
    target_status: str,
    movement_type: str,
    reason: str,
    reference_type: str,
    reference_id,
    performed_by: str,
) -> StockChange:
    batch = lock_batch(batch_id)
    _set_status(batch, target_status)

    written_off = batch.quantity_remaining
    batch.quantity_remaining = Decimal("0")
    batch.save(update_fields=["status", "quantity_remaining", "updated_at"])

    movement = None
    if written_off > 0:
        movement = record_movement(
            batch=batch,
            movement_type=movement_type,
            quantity=written_off,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            performed_by=performed_by,
        )

    logger.warning(
        "Batch written off",
        extra={"batch_code": batch.batch_code, "status": target_status, "quantity": str(written_off)},
    )
    return StockChange(batch=batch, movement=movement, quantity=written_off)


@transaction.atomic
def destroy(batch_id, *, reason: str = "destroyed", reference_type: str = "", reference_id="", performed_by: str = "") -> StockChange:
    return _write_off(
        batch_id,
        target_status=Status.DESTROYED,
        movement_type=MovementType.DESTROYED,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by=performed_by,
    )


@transaction.atomic
def mark_returned(batch_id, *, reason: str = "returned", reference_type: str = "", reference_id="", performed_by: str = "") -> StockChange:
    return _write_off(
        batch_id,
        target_status=Status.RETURNED,
        movement_type=MovementType.RETURNED,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by=performed_by,
    )


# ============================================================
# EXPIRY (external clock)
# ============================================================

@transaction.atomic
def expire(batch_id, *, reason: str = "use-by date passed", performed_by: str = "") -> StockChange:
    batch = lock_batch(batch_id)
    _set_status(batch, Status.EXPIRED)
    batch.save(update_fields=["status", "updated_at"])

    movement = record_movement(
        batch=batch,
        movement_type=MovementType.EXPIRED,
        quantity=batch.quantity_remaining,
        reason=reason,
        performed_by=performed_by,
    )
    return StockChange(batch=batch, movement=movement, quantity=batch.quantity_remaining)


def expire_due_batches(*, today=None, company=None) -> list[StockBatch]:
    """
    Expire every ACTIVE batch whose use-by date has passed.

    Best-before dates are quality guidance, not a safety limit, so they do
    not expire stock.
    """
    today = today or timezone.localdate()
    qs = StockBatch.objects.filter(status=Status.ACTIVE, use_by_date__lt=today)
    if company is not None:
        qs = qs.filter(company=company)

    expired = []
    for batch_id in qs.values_list("id", flat=True):
        try:
            expired.append(expire(batch_id).batch)
        except InvalidTransitionError:
            # status changed between the scan and the lock
            logger.info("Batch no longer active during expiry scan", extra={"batch_id": str(batch_id)})
    return expired
