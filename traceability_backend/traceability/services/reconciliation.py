# traceability/services/reconciliation.py

"""
RECONCILIATION CALCULATOR

- compute_mass_balance(): input vs output across the production boundaries
  a trace visited (informational, never an error)
- recall_balance(): affected vs recovered vs unaccounted for one recall
- readiness_summary(): grouped counts for the compliance dashboard

RULES:
- Quantities are converted, never coerced: an unconvertible row is skipped
  and reported as a warning.
- recall_balance() never raises NegativeBalanceError by default; it is
  carried on the result so dashboards can still render.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Count

from inventory.models import StockBatch, Supplier
from inventory.services.exceptions import (
    IncompatibleUnitsError,
    NegativeBalanceError,
    NotFoundError,
)
from inventory.services.units import QUANTITY_PLACES, convert, quantize_quantity
from recalls.models import Recall
from traceability.models import TraceExercise

logger = logging.getLogger(__name__)

PERCENT_PLACES = Decimal("0.01")
ZERO = Decimal("0")


# ============================================================
# MASS BALANCE
# ============================================================

@dataclass(frozen=True)
class MassBalance:
    total_input: Decimal
    total_output: Decimal
    variance: Decimal
    variance_percent: Decimal
    unit: str

    def as_dict(self) -> dict:
        return {
            "total_input": self.total_input,
            "total_output": self.total_output,
            "variance": self.variance,
            "variance_percent": self.variance_percent,
            "unit": self.unit,
        }


def sum_quantities(quantities, unit: str, *, warnings: list | None = None) -> Decimal:
    """
    Sum (quantity, unit) pairs in `unit`.
    Rows in another dimension are skipped and described in `warnings`.
    """
    total = ZERO
    for quantity, from_unit in quantities:
        if quantity is None:
            continue
        try:
            total += convert(quantity, from_unit, unit).quantity
        except IncompatibleUnitsError as exc:
            if warnings is not None:
                warnings.append(f"Skipped {quantity} {from_unit}: {exc}")
    return total


def compute_mass_balance(total_input, total_output, unit: str) -> MassBalance | None:
    """
    variance = input - output
    variance_percent = variance / input * 100 (2 dp)

    None when no production boundary was crossed (input is zero).
    """
    total_input = Decimal(total_input)
    total_output = Decimal(total_output)
    if total_input == ZERO:
        return None

    variance = total_input - total_output
    percent = (variance / total_input * Decimal("100")).quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)

    return MassBalance(
        total_input=total_input.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP),
        total_output=total_output.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP),
        variance=variance.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP),
        variance_percent=percent,
        unit=unit,
    )


# ============================================================
# RECALL BALANCE
# ============================================================

@dataclass(frozen=True)
class RecallBalance:
    total_affected: Decimal
    total_recovered: Decimal
    unaccounted: Decimal
    unit: str | None
    warning: NegativeBalanceError | None = None
    skipped: list = field(default_factory=list)

    @property
    def has_warning(self) -> bool:
        return self.warning is not None

    def raise_for_warning(self) -> None:
        if self.warning is not None:
            raise self.warning

    def as_dict(self) -> dict:
        return {
            "total_affected": self.total_affected,
            "total_recovered": self.total_recovered,
            "unaccounted": self.unaccounted,
            "unit": self.unit,
            "negative_balance": self.has_warning,
            "warning": str(self.warning) if self.warning else None,
            "skipped": list(self.skipped),
        }


def recall_balance(recall_id) -> RecallBalance:
    """
    Sum quantity_affected / quantity_recovered over a recall's affected
    batches, in the unit of the first registered row.
    """
    recall_pk = getattr(recall_id, "pk", recall_id)
    recall = Recall.objects.filter(pk=recall_pk).first()
    if recall is None:
        raise NotFoundError("Recall", recall_pk)

    rows = list(recall.affected_batches.order_by("created_at"))
    if not rows:
        return RecallBalance(total_affected=ZERO, total_recovered=ZERO, unaccounted=ZERO, unit=None)

    unit = rows[0].unit
    skipped = []
    affected = sum_quantities(((r.quantity_affected, r.unit) for r in rows), unit, warnings=skipped)
    recovered = sum_quantities(((r.quantity_recovered, r.unit) for r in rows), unit, warnings=skipped)

    raw_unaccounted = affected - recovered
    warning = None
    if raw_unaccounted < ZERO:
        warning = NegativeBalanceError(
            f"Recall {recall.recall_code}: recovered {quantize_quantity(recovered)} {unit} "
            f"exceeds affected {quantize_quantity(affected)} {unit}"
        )
        logger.warning(
            "Negative recall balance",
            extra={"recall_code": recall.recall_code, "affected": str(affected), "recovered": str(recovered)},
        )

    return RecallBalance(
        total_affected=quantize_quantity(affected),
        total_recovered=quantize_quantity(recovered),
        unaccounted=quantize_quantity(max(raw_unaccounted, ZERO)),
        unit=unit,
        warning=warning,
        skipped=skipped,
    )


# ============================================================
# READINESS SUMMARY
# ============================================================

def _grouped_counts(qs, field_name: str) -> dict:
    rows = qs.order_by().values(field_name).annotate(n=Count("id"))
    return {row[field_name]: row["n"] for row in rows}


def readiness_summary(company=None) -> dict:
    recalls = Recall.objects.all()
    batches = StockBatch.objects.all()
    suppliers = Supplier.objects.all()
    exercises = TraceExercise.objects.filter(completed_at__isnull=False)

    if company is not None:
        recalls = recalls.filter(company=company)
        batches = batches.filter(company=company)
        suppliers = suppliers.filter(company=company)
        exercises = exercises.filter(company=company)

    open_recalls = recalls.exclude(status__in=[Recall.Status.DRAFT, Recall.Status.CLOSED])
    overdue = [r.recall_code for r in open_recalls if r.is_notification_overdue]

    latest = exercises.select_related("stock_batch").order_by("-completed_at").first()
    last_exercise = None
    if latest is not None:
        last_exercise = {
            "id": str(latest.id),
            "batch_code": latest.stock_batch.batch_code,
            "completed_at": latest.completed_at.isoformat(),
            "elapsed_seconds": int(latest.elapsed.total_seconds()),
            "within_target": latest.within_target,
        }

    return {
        "recalls_by_status": _grouped_counts(recalls, "status"),
        "open_recalls": open_recalls.count(),
        "overdue_notifications": overdue,
        "batches_by_status": _grouped_counts(batches, "status"),
        "suppliers_by_approval_status": _grouped_counts(suppliers, "approval_status"),
        "last_exercise": last_exercise,
    }
