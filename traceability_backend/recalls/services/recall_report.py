# recalls/services/recall_report.py

"""
RECALL REPORT PAYLOAD

Read model handed to an external document renderer:
header, affected batches (each with its production mass balance),
notifications, allergen summary, recovery balance, timeline and the
regulator SLA flag.

Nothing here writes.
"""

from __future__ import annotations

from django.utils import timezone

from inventory.services.exceptions import NotFoundError
from recalls.models import Recall
from traceability.services.graph_builder import trace_backward, trace_forward
from traceability.services.reconciliation import recall_balance


def _load_recall(recall_id) -> Recall:
    pk = getattr(recall_id, "pk", recall_id)
    recall = (
        Recall.objects.prefetch_related("affected_batches__stock_batch__stock_item", "notifications")
        .filter(pk=pk)
        .first()
    )
    if recall is None:
        raise NotFoundError("Recall", pk)
    return recall


def _iso(value):
    return value.isoformat() if value else None


def _mass_balance(batch_id) -> dict | None:
    # raw deliveries have no production boundary behind them
    balance = trace_backward(batch_id).mass_balance
    return balance.as_dict() if balance is not None else None


def _timeline(recall: Recall) -> list[dict]:
    events = [
        ("created", recall.created_at),
        ("initiated", recall.initiated_at),
        ("salsa_notified", recall.salsa_notified_at),
        ("fsa_notified", recall.fsa_notified_at),
        ("resolved", recall.resolved_at),
        ("closed", recall.closed_at),
    ]
    present = [(name, at) for name, at in events if at is not None]
    present.sort(key=lambda item: item[1])
    return [{"event": name, "at": at.isoformat()} for name, at in present]


def build_report(recall_id) -> dict:
    recall = _load_recall(recall_id)
    affected = list(recall.affected_batches.all())
    notifications = list(recall.notifications.all())

    allergens = set()
    for row in affected:
        allergens.update(row.stock_batch.allergens or [])

    return {
        "recall": {
            "id": str(recall.id),
            "recall_code": recall.recall_code,
            "title": recall.title,
            "recall_type": recall.recall_type,
            "severity": recall.severity,
            "status": recall.status,
            "reason": recall.reason,
            "root_cause": recall.root_cause,
            "corrective_actions": recall.corrective_actions,
            "notes": recall.notes,
            "salsa_notified": recall.salsa_notified,
            "salsa_reference": recall.salsa_reference,
            "fsa_notified": recall.fsa_notified,
            "fsa_reference": recall.fsa_reference,
        },
        "affected_batches": [
            {
                "id": str(row.id),
                "batch_code": row.stock_batch.batch_code,
                "stock_item": row.stock_batch.stock_item.name,
                "batch_type": row.batch_type,
                "quantity_affected": row.quantity_affected,
                "quantity_recovered": row.quantity_recovered,
                "unit": row.unit,
                "action_taken": row.action_taken,
                "batch_status": row.stock_batch.status,
                "use_by_date": _iso(row.stock_batch.use_by_date),
                "mass_balance": _mass_balance(row.stock_batch_id),
            }
            for row in affected
        ],
        "notifications": [
            {
                "id": str(n.id),
                "customer_name": n.customer_name,
                "notification_method": n.notification_method,
                "contact_email": n.contact_email,
                "contact_phone": n.contact_phone,
                "notified_at": _iso(n.notified_at),
                "response_received": n.response_received,
                "response_notes": n.response_notes,
                "responded_at": _iso(n.responded_at),
            }
            for n in notifications
        ],
        "allergen_summary": sorted(allergens),
        "balance": recall_balance(recall.id).as_dict(),
        "timeline": _timeline(recall),
        "notification_overdue": recall.is_notification_overdue,
        "notification_deadline": _iso(recall.notification_deadline),
        "generated_at": _iso(timezone.now()),
    }


def recall_trace(recall_id) -> dict:
    """
    Forward trace of every affected batch: where the recalled material went.
    """
    recall = _load_recall(recall_id)
    traces = []
    for row in recall.affected_batches.all():
        result = trace_forward(row.stock_batch_id)
        traces.append({"affected_batch_id": str(row.id), **result.as_dict()})
    return {"recall_code": recall.recall_code, "traces": traces}
