# inventory/services/dispatch.py

"""
DISPATCH RECORDING

Dispatch is a distribution event, not a depletion event:
- quantity_remaining is NOT decremented
- the batch must be in a dispatchable state (active or depleted)
- the dispatched quantity is converted to the batch unit for the bound check
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from inventory.models import Customer, DispatchRecord, StockBatch
from inventory.services.batch_lifecycle import can_dispatch
from inventory.services.batch_state import lock_batch
from inventory.services.exceptions import InvalidTransitionError
from inventory.services.units import (
    canonical_unit,
    convert,
    normalize_quantity,
    parse_iso_date,
    quantize_quantity,
)

logger = logging.getLogger(__name__)


def dispatched_total(batch: StockBatch):
    """Total dispatched from `batch`, in the batch unit."""
    total = 0
    for row in batch.dispatches.order_by().values("unit").annotate(qty=Sum("quantity")):
        total += convert(row["qty"], row["unit"], batch.unit).quantity
    return quantize_quantity(total)


@transaction.atomic
def record_dispatch(
    *,
    batch,
    quantity,
    dispatch_date,
    unit: str | None = None,
    customer: Customer | None = None,
    customer_name: str = "",
    reference: str = "",
) -> DispatchRecord:
    stock_batch = lock_batch(batch)

    if not can_dispatch(stock_batch):
        raise InvalidTransitionError(
            f"Batch {stock_batch.batch_code} is '{stock_batch.status}' and cannot be dispatched"
        )

    qty = quantize_quantity(normalize_quantity(quantity, allow_zero=False))
    dispatch_unit = canonical_unit(unit or stock_batch.unit)
    in_batch_unit = convert(qty, dispatch_unit, stock_batch.unit).quantity

    if dispatched_total(stock_batch) + in_batch_unit > stock_batch.quantity_received:
        raise ValidationError(
            f"Dispatching {qty} {dispatch_unit} would exceed the quantity produced for batch "
            f"{stock_batch.batch_code} ({stock_batch.quantity_received} {stock_batch.unit})"
        )

    if customer is not None and customer.company_id != stock_batch.company_id:
        raise ValidationError("customer must belong to the batch company")

    name = (customer_name or "").strip() or getattr(customer, "name", "")
    if not name:
        raise ValidationError("customer or customer_name is required")

    shipped_on = parse_iso_date(dispatch_date, field_name="dispatch_date")
    if shipped_on is None:
        raise ValidationError("dispatch_date is required")

    record = DispatchRecord.objects.create(
        stock_batch=stock_batch,
        customer=customer,
        customer_name=name,
        quantity=qty,
        unit=dispatch_unit,
        dispatch_date=shipped_on,
        reference=(reference or "").strip(),
    )

    logger.info(
        "Batch dispatched",
        extra={"batch_code": stock_batch.batch_code, "customer": name, "quantity": str(qty)},
    )
    return record
