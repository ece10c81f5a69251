# production/services/production_service.py

"""
PRODUCTION RECORDING (APPLICATION SERVICE)

Purpose:
- Record production runs: inputs consumed (incl. rework) and outputs made.
- Every input change moves stock through inventory.services.batch_state,
  so a StockBatch's quantity_remaining always equals
  received - committed consumptions + reversals.
- Outputs are StockBatches with production provenance (production_batch set,
  delivery_line never set) and a PRODUCED ledger movement.

Rules:
- Inputs / outputs are locked once the run is completed or cancelled.
- A rework input always names the batch the reworked material came from;
  when none is given the consumed batch itself is the rework source.
- Cancelling a run does NOT give consumed stock back. Remove the inputs
  first if the material was not actually used.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from inventory.models import BatchMovement, StockBatch, StockItem
from inventory.services import batch_state
from inventory.services.exceptions import IncompatibleUnitsError, NotFoundError
from inventory.services.units import (
    canonical_unit,
    convert,
    normalize_allergens,
    normalize_quantity,
    parse_iso_date,
    quantize_quantity,
)
from production.models import ProductionBatch, ProductionBatchInput
from production.services.production_lifecycle import (
    assert_inputs_editable,
    validate_transition,
)

logger = logging.getLogger(__name__)

Status = ProductionBatch.Status

REFERENCE_TYPE = "production_batch"


# ============================================================
# HELPERS
# ============================================================

def _lock_production_batch(production_batch_id) -> ProductionBatch:
    pb_id = getattr(production_batch_id, "pk", production_batch_id)
    try:
        return ProductionBatch.objects.select_for_update().get(pk=pb_id)
    except (ProductionBatch.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("ProductionBatch", pb_id)


def _lock_input(input_id) -> ProductionBatchInput:
    pk = getattr(input_id, "pk", input_id)
    try:
        return (
            ProductionBatchInput.objects.select_for_update()
            .select_related("production_batch", "stock_batch")
            .get(pk=pk)
        )
    except (ProductionBatchInput.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("ProductionBatchInput", pk)


def _get_stock_batch(batch_id) -> StockBatch:
    pk = getattr(batch_id, "pk", batch_id)
    try:
        return StockBatch.objects.select_related("stock_item").get(pk=pk)
    except (StockBatch.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("StockBatch", pk)


# ============================================================
# RUN LIFECYCLE
# ============================================================

@transaction.atomic
def create_production_batch(
    *,
    company,
    production_date,
    batch_code: str | None = None,
    recipe_id: str = "",
    planned_quantity=None,
    unit: str = "kg",
    notes: str = "",
) -> ProductionBatch:
    produced_on = parse_iso_date(production_date, field_name="production_date")
    if produced_on is None:
        raise ValidationError("production_date is required")

    code = (batch_code or "").strip() or f"PB-{uuid.uuid4().hex[:8].upper()}"
    planned = None
    if planned_quantity not in (None, ""):
        planned = quantize_quantity(normalize_quantity(planned_quantity, field_name="planned_quantity"))

    try:
        with transaction.atomic():
            return ProductionBatch.objects.create(
                company=company,
                batch_code=code,
                recipe_id=(recipe_id or "").strip(),
                production_date=produced_on,
                planned_quantity=planned,
                unit=canonical_unit(unit),
                notes=notes or "",
            )
    except IntegrityError as exc:
        raise ValidationError(f"Production batch code {code} already exists for this company") from exc


@transaction.atomic
def start_production(production_batch_id) -> ProductionBatch:
    pb = _lock_production_batch(production_batch_id)
    validate_transition(production_batch=pb, target_status=Status.IN_PROGRESS)

    pb.status = Status.IN_PROGRESS
    pb.started_at = timezone.now()
    pb.save(update_fields=["status", "started_at", "updated_at"])
    return pb


@transaction.atomic
def complete_production(production_batch_id, *, notes: str | None = None) -> ProductionBatch:
    """
    Close a run.

    - actual_quantity = sum of output batches (converted to the run unit)
    - allergens = union of every input batch + every output batch
    """
    pb = _lock_production_batch(production_batch_id)
    validate_transition(production_batch=pb, target_status=Status.COMPLETED)

    total = Decimal("0")
    allergens = set()
    for output in pb.output_batches.all():
        allergens.update(output.allergens or [])
        try:
            total += convert(output.quantity_received, output.unit, pb.unit).quantity
        except IncompatibleUnitsError:
            logger.warning(
                "Output excluded from production total",
                extra={"production_batch": pb.batch_code, "batch_code": output.batch_code, "unit": output.unit},
            )

    for row in pb.inputs.select_related("stock_batch"):
        allergens.update(row.stock_batch.allergens or [])

    pb.status = Status.COMPLETED
    pb.completed_at = timezone.now()
    pb.actual_quantity = quantize_quantity(total)
    pb.allergens = normalize_allergens(allergens)
    if notes is not None:
        pb.notes = notes
    pb.save()

    logger.info(
        "Production completed",
        extra={
            "production_batch": pb.batch_code,
            "actual_quantity": str(pb.actual_quantity),
            "yield_percent": str(pb.yield_percent),
        },
    )
    return pb


@transaction.atomic
def cancel_production(production_batch_id, *, reason: str = "") -> ProductionBatch:
    pb = _lock_production_batch(production_batch_id)
    validate_transition(production_batch=pb, target_status=Status.CANCELLED)

    pb.status = Status.CANCELLED
    if reason:
        pb.notes = f"{pb.notes}\nCancelled: {reason}".strip()
    pb.save(update_fields=["status", "notes", "updated_at"])

    logger.info("Production cancelled", extra={"production_batch": pb.batch_code})
    return pb


# ============================================================
# INPUTS (consume / restore through the batch state machine)
# ============================================================

@transaction.atomic
def add_input(
    *,
    production_batch_id,
    stock_batch_id,
    planned_quantity,
    actual_quantity=None,
    unit: str | None = None,
    is_rework: bool = False,
    rework_source_batch_id=None,
    performed_by: str = "",
) -> ProductionBatchInput:
    pb = _lock_production_batch(production_batch_id)
    assert_inputs_editable(pb)

    source = _get_stock_batch(stock_batch_id)
    if source.company_id != pb.company_id:
        raise ValidationError("stock batch and production batch must belong to the same company")

    rework_source = None
    if rework_source_batch_id:
        if not is_rework:
            raise ValidationError("rework_source_batch_id requires is_rework=true")
        rework_source = _get_stock_batch(rework_source_batch_id)
    elif is_rework:
        rework_source = source

    input_unit = canonical_unit(unit or source.unit)
    planned = quantize_quantity(normalize_quantity(planned_quantity, field_name="planned_quantity"))
    actual = None
    if actual_quantity not in (None, ""):
        actual = quantize_quantity(normalize_quantity(actual_quantity, field_name="actual_quantity"))

    consumed = actual if actual is not None else planned
    if consumed > 0:
        batch_state.consume(
            source.id,
            consumed,
            input_unit,
            reason=f"consumed by {pb.batch_code}",
            reference_type=REFERENCE_TYPE,
            reference_id=pb.id,
            performed_by=performed_by,
        )

    row = ProductionBatchInput.objects.create(
        production_batch=pb,
        stock_batch=source,
        stock_item=source.stock_item,
        planned_quantity=planned,
        actual_quantity=actual,
        unit=input_unit,
        is_rework=bool(is_rework),
        rework_source_batch=rework_source,
    )

    logger.info(
        "Production input added",
        extra={
            "production_batch": pb.batch_code,
            "batch_code": source.batch_code,
            "quantity": str(consumed),
            "is_rework": bool(is_rework),
        },
    )
    return row


@transaction.atomic
def record_actual_quantity(input_id, actual_quantity, *, performed_by: str = "") -> ProductionBatchInput:
    """
    Finalize an input's actual quantity; stock moves by the difference
    against what was already consumed.
    """
    row = _lock_input(input_id)
    pb = _lock_production_batch(row.production_batch_id)
    assert_inputs_editable(pb)

    new_actual = quantize_quantity(normalize_quantity(actual_quantity, field_name="actual_quantity"))
    delta = new_actual - row.consumed_quantity

    if delta > 0:
        batch_state.consume(
            row.stock_batch_id,
            delta,
            row.unit,
            reason=f"actual quantity adjusted on {pb.batch_code}",
            reference_type=REFERENCE_TYPE,
            reference_id=pb.id,
            performed_by=performed_by,
        )
    elif delta < 0:
        batch_state.restore_consumption(
            row.stock_batch_id,
            -delta,
            row.unit,
            reason=f"actual quantity adjusted on {pb.batch_code}",
            reference_type=REFERENCE_TYPE,
            reference_id=pb.id,
            performed_by=performed_by,
        )

    row.actual_quantity = new_actual
    row.save(update_fields=["actual_quantity"])
    return row


@transaction.atomic
def remove_input(input_id, *, performed_by: str = "") -> None:
    row = _lock_input(input_id)
    pb = _lock_production_batch(row.production_batch_id)
    assert_inputs_editable(pb)

    consumed = row.consumed_quantity
    if consumed > 0:
        batch_state.restore_consumption(
            row.stock_batch_id,
            consumed,
            row.unit,
            reason=f"input removed from {pb.batch_code}",
            reference_type=REFERENCE_TYPE,
            reference_id=pb.id,
            performed_by=performed_by,
        )

    row.delete()
    logger.info(
        "Production input removed",
        extra={"production_batch": pb.batch_code, "batch_code": row.stock_batch.batch_code},
    )


# ============================================================
# OUTPUTS
# ============================================================

@transaction.atomic
def record_output(
    *,
    production_batch_id,
    stock_item,
    quantity,
    unit: str | None = None,
    batch_code: str | None = None,
    use_by_date=None,
    best_before_date=None,
    allergens=None,
    performed_by: str = "",
) -> StockBatch:
    """
    Create the StockBatch a run produced.

    Allergens carried onto the output = item allergens + every input batch's
    allergens + any explicitly declared ones.
    """
    pb = _lock_production_batch(production_batch_id)
    assert_inputs_editable(pb)

    if not isinstance(stock_item, StockItem):
        try:
            stock_item = StockItem.objects.get(pk=stock_item)
        except (StockItem.DoesNotExist, ValidationError, ValueError):
            raise NotFoundError("StockItem", stock_item)

    if stock_item.company_id != pb.company_id:
        raise ValidationError("stock item and production batch must belong to the same company")

    qty = quantize_quantity(normalize_quantity(quantity, allow_zero=False))
    output_unit = canonical_unit(unit or stock_item.unit)
    code = (batch_code or "").strip() or f"FP-{uuid.uuid4().hex[:8].upper()}"

    carried = set(stock_item.allergens or [])
    carried.update(allergens or [])
    for row in pb.inputs.select_related("stock_batch"):
        carried.update(row.stock_batch.allergens or [])

    try:
        with transaction.atomic():
            output = StockBatch.objects.create(
                company_id=pb.company_id,
                stock_item=stock_item,
                batch_code=code,
                quantity_received=qty,
                quantity_remaining=qty,
                unit=output_unit,
                use_by_date=parse_iso_date(use_by_date, field_name="use_by_date"),
                best_before_date=parse_iso_date(best_before_date, field_name="best_before_date"),
                allergens=normalize_allergens(carried),
                production_batch=pb,
            )
    except IntegrityError as exc:
        raise ValidationError(f"Batch code {code} already exists for this company") from exc

    batch_state.record_movement(
        batch=output,
        movement_type=BatchMovement.MovementType.PRODUCED,
        quantity=qty,
        reason=f"produced by {pb.batch_code}",
        reference_type=REFERENCE_TYPE,
        reference_id=pb.id,
        performed_by=performed_by,
    )

    logger.info(
        "Production output recorded",
        extra={"production_batch": pb.batch_code, "batch_code": code, "quantity": str(qty)},
    )
    return output
