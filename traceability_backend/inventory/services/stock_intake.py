# inventory/services/stock_intake.py

"""
DELIVERY INTAKE (APPLICATION SERVICE)

Purpose:
- Intake raw material ONLY via a supplier delivery.
- Every line creates one StockBatch with delivery provenance
  (delivery_line set, production_batch never set).
- Produce a matching BatchMovement(RECEIVED) ledger record per batch.
- Keep the whole delivery atomic: one bad line rolls back every line.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from inventory.models import (
    BatchMovement,
    Delivery,
    DeliveryLine,
    StockBatch,
    StockItem,
    Supplier,
)
from inventory.services.batch_state import record_movement
from inventory.services.units import (
    canonical_unit,
    normalize_allergens,
    normalize_quantity,
    parse_iso_date,
    quantize_quantity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntakeResult:
    delivery: Delivery
    batches: list


def _resolve_stock_item(*, supplier: Supplier, line: dict) -> StockItem:
    item = line.get("stock_item")
    if isinstance(item, StockItem):
        stock_item = item
    else:
        item_id = line.get("stock_item_id") or item
        if not item_id:
            raise ValidationError("stock_item_id is required on every delivery line")
        try:
            stock_item = StockItem.objects.get(pk=item_id)
        except (StockItem.DoesNotExist, ValueError, ValidationError):
            raise ValidationError(f"Unknown stock item: {item_id}")

    if stock_item.company_id != supplier.company_id:
        raise ValidationError("stock item and supplier must belong to the same company")
    return stock_item


@transaction.atomic
def intake_delivery(
    *,
    supplier: Supplier,
    delivery_date,
    lines: list[dict],
    reference: str = "",
    performed_by: str = "",
) -> IntakeResult:
    """
    Record a supplier delivery.

    Each line: stock_item / stock_item_id, quantity, unit (defaults to the
    item unit), batch_code (optional, generated when blank), use_by_date,
    best_before_date, allergens (defaults to the item allergens).
    """
    if supplier is None:
        raise ValidationError("supplier is required")

    if not lines:
        raise ValidationError("A delivery needs at least one line")

    delivered_on = parse_iso_date(delivery_date, field_name="delivery_date")
    if delivered_on is None:
        raise ValidationError("delivery_date is required")

    if supplier.approval_status in {Supplier.ApprovalStatus.SUSPENDED, Supplier.ApprovalStatus.REJECTED}:
        raise ValidationError(
            f"Supplier {supplier.name} is {supplier.approval_status} and cannot deliver"
        )

    delivery = Delivery.objects.create(
        supplier=supplier,
        delivery_date=delivered_on,
        reference=(reference or "").strip(),
    )

    batches = []
    for line in lines:
        stock_item = _resolve_stock_item(supplier=supplier, line=line)
        quantity = quantize_quantity(normalize_quantity(line.get("quantity"), allow_zero=False))
        unit = canonical_unit(line.get("unit") or stock_item.unit)

        code = (line.get("batch_code") or "").strip()
        if not code:
            code = f"RM-{uuid.uuid4().hex[:8].upper()}"

        allergens = line.get("allergens")
        if allergens is None:
            allergens = stock_item.allergens

        delivery_line = DeliveryLine.objects.create(delivery=delivery)

        try:
            with transaction.atomic():
                batch = StockBatch.objects.create(
                    company_id=supplier.company_id,
                    stock_item=stock_item,
                    batch_code=code,
                    quantity_received=quantity,
                    quantity_remaining=quantity,
                    unit=unit,
                    use_by_date=parse_iso_date(line.get("use_by_date"), field_name="use_by_date"),
                    best_before_date=parse_iso_date(line.get("best_before_date"), field_name="best_before_date"),
                    allergens=normalize_allergens(allergens),
                    delivery_line=delivery_line,
                )
        except IntegrityError as exc:
            raise ValidationError(
                f"Batch code {code} already exists for this company"
            ) from exc

        record_movement(
            batch=batch,
            movement_type=BatchMovement.MovementType.RECEIVED,
            quantity=quantity,
            reason=f"delivery from {supplier.name}",
            reference_type="delivery",
            reference_id=delivery.id,
            performed_by=performed_by,
        )
        batches.append(batch)

    logger.info(
        "Delivery received",
        extra={
            "supplier": supplier.name,
            "delivery_id": str(delivery.id),
            "batch_count": len(batches),
        },
    )
    return IntakeResult(delivery=delivery, batches=batches)
