# recalls/tests/test_recall_workflow.py

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone

from inventory.models import BatchMovement, StockBatch, StockItem
from inventory.services.exceptions import (
    DuplicateBatchError,
    InvalidTransitionError,
    NegativeBalanceError,
)
from inventory.tests.fixtures import TODAY, make_item, produce, receive
from recalls.models import Recall, RecallAffectedBatch
from recalls.services import recall_workflow
from recalls.services.recall_report import build_report, recall_trace
from traceability.services.demo_scenario import seed_farmco_scenario
from traceability.services.reconciliation import recall_balance

Status = Recall.Status
Action = RecallAffectedBatch.Action


class RecallTestMixin:
    def setUp(self):
        self.demo = seed_farmco_scenario(today=TODAY)
        self.recall = recall_workflow.create_recall(
            company=self.demo.company,
            recall_code="REC-001",
            title="Undeclared sesame in FP-001",
            severity=Recall.Severity.CLASS_1,
            reason="Supplier allergen notice",
            status=Status.ACTIVE,
            created_by="compliance",
        )

    def _register(self, batch, **kwargs):
        return recall_workflow.register_affected_batch(recall_id=self.recall.id, stock_batch_id=batch.id, **kwargs)

    def _move(self, *targets):
        for target in targets:
            self.recall = recall_workflow.transition_recall(self.recall.id, target_status=target)
        return self.recall


class AffectedBatchRegistrationTests(RecallTestMixin, TestCase):
    def test_registration_quarantines_only_that_batch(self):
        result = self._register(self.demo.finished_batch)

        self.assertTrue(result.quarantined)
        self.assertEqual(result.discrepancy, "")
        self.assertEqual(result.affected_batch.action_taken, Action.QUARANTINED)
        self.assertEqual(result.affected_batch.quantity_affected, Decimal("45.000"))
        self.assertEqual(result.affected_batch.batch_type, RecallAffectedBatch.BatchType.FINISHED_PRODUCT)
        # returned row carries the post-quarantine batch state
        self.assertEqual(result.affected_batch.stock_batch.status, StockBatch.Status.QUARANTINED)

        self.demo.finished_batch.refresh_from_db()
        self.demo.raw_batch.refresh_from_db()
        self.assertEqual(self.demo.finished_batch.status, StockBatch.Status.QUARANTINED)
        self.assertEqual(self.demo.raw_batch.status, StockBatch.Status.ACTIVE)

        movement = BatchMovement.objects.get(
            batch=self.demo.finished_batch, movement_type=BatchMovement.MovementType.QUARANTINED
        )
        self.assertEqual(movement.reference_type, "recall")
        self.assertEqual(movement.reference_id, str(self.recall.id))

    def test_duplicate_registration_is_rejected(self):
        self._register(self.demo.finished_batch)

        with self.assertRaises(DuplicateBatchError):
            self._register(self.demo.finished_batch)

        self.assertEqual(self.recall.affected_batches.count(), 1)
        self.assertEqual(
            BatchMovement.objects.filter(
                batch=self.demo.finished_batch,
                movement_type=BatchMovement.MovementType.QUARANTINED,
            ).count(),
            1,
        )

    def test_depleted_batch_stays_pending_with_discrepancy(self):
        oats = make_item(self.demo.company, "Oats")
        bars = make_item(self.demo.company, "Bars", item_type=StockItem.ItemType.FINISHED_PRODUCT)
        raw = receive(self.demo.supplier, oats, "10", batch_code="RM-OATS")
        produce(
            self.demo.company,
            code="PB-OATS",
            inputs=[(raw, "10")],
            output_item=bars,
            output_quantity="9",
            output_code="FP-BARS",
        )

        result = self._register(raw)

        self.assertFalse(result.quarantined)
        self.assertIn("depleted", result.discrepancy)
        self.assertEqual(result.affected_batch.action_taken, Action.PENDING)
        self.assertEqual(result.affected_batch.batch_type, RecallAffectedBatch.BatchType.RAW_MATERIAL)

    def test_already_quarantined_batch_counts_as_quarantined(self):
        other = recall_workflow.create_recall(
            company=self.demo.company,
            title="Second",
            severity=Recall.Severity.CLASS_2,
            reason="Overlap",
            status=Status.ACTIVE,
        )
        self._register(self.demo.finished_batch)

        result = recall_workflow.register_affected_batch(recall_id=other.id, stock_batch_id=self.demo.finished_batch.id)

        self.assertTrue(result.quarantined)
        self.assertEqual(result.affected_batch.action_taken, Action.QUARANTINED)
        self.assertTrue(other.recall_code.startswith("REC-"))

    def test_quantity_in_other_unit_is_converted(self):
        result = self._register(self.demo.finished_batch, quantity_affected="12500", unit="g")
        self.assertEqual(result.affected_batch.quantity_affected, Decimal("12.500"))
        self.assertEqual(result.affected_batch.unit, "kg")

    def test_closed_recall_accepts_no_batches(self):
        self._move(Status.CLOSED)
        with self.assertRaises(InvalidTransitionError):
            self._register(self.demo.finished_batch)

    def test_removal_keeps_quarantine(self):
        result = self._register(self.demo.finished_batch)
        recall_workflow.remove_affected_batch(recall_id=self.recall.id, affected_batch_id=result.affected_batch.id)

        self.assertFalse(self.recall.affected_batches.exists())
        self.demo.finished_batch.refresh_from_db()
        self.assertEqual(self.demo.finished_batch.status, StockBatch.Status.QUARANTINED)

    def test_removal_locked_once_notified(self):
        result = self._register(self.demo.finished_batch)
        self._move(Status.INVESTIGATING, Status.NOTIFIED)

        with self.assertRaises(InvalidTransitionError):
            recall_workflow.remove_affected_batch(recall_id=self.recall.id, affected_batch_id=result.affected_batch.id)

        # late discoveries can still be registered while notified
        self._register(self.demo.raw_batch)
        self.assertEqual(self.recall.affected_batches.count(), 2)


class AffectedBatchActionTests(RecallTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.row = self._register(self.demo.finished_batch).affected_batch

    def _act(self, **kwargs):
        return recall_workflow.set_affected_batch_action(
            recall_id=self.recall.id, affected_batch_id=self.row.id, **kwargs
        )

    def test_destroy_writes_off_batch(self):
        row = self._act(action=Action.DESTROYED, quantity_recovered="40")

        self.assertEqual(row.action_taken, Action.DESTROYED)
        self.demo.finished_batch.refresh_from_db()
        self.assertEqual(self.demo.finished_batch.status, StockBatch.Status.DESTROYED)
        self.assertEqual(self.demo.finished_batch.quantity_remaining, Decimal("0"))

        balance = recall_balance(self.recall.id)
        self.assertEqual(balance.total_affected, Decimal("45.000"))
        self.assertEqual(balance.total_recovered, Decimal("40.000"))
        self.assertEqual(balance.unaccounted, Decimal("5.000"))
        self.assertEqual(balance.unit, "kg")
        self.assertFalse(balance.has_warning)

    def test_release_reactivates_batch(self):
        self._act(action=Action.RELEASED)
        self.demo.finished_batch.refresh_from_db()
        self.assertEqual(self.demo.finished_batch.status, StockBatch.Status.ACTIVE)

    def test_recovered_cannot_exceed_affected(self):
        with self.assertRaises(ValidationError):
            self._act(quantity_recovered="46")

    def test_destroyed_batch_cannot_be_released(self):
        self._act(action=Action.DESTROYED)
        with self.assertRaises(InvalidTransitionError):
            self._act(action=Action.RELEASED)


class RecallLifecycleTests(RecallTestMixin, TestCase):
    def test_forward_path_sets_timestamps(self):
        self.assertIsNotNone(self.recall.initiated_at)
        recall = self._move(Status.INVESTIGATING, Status.NOTIFIED, Status.RESOLVED, Status.CLOSED)

        self.assertEqual(recall.status, Status.CLOSED)
        self.assertIsNotNone(recall.resolved_at)
        self.assertIsNotNone(recall.closed_at)

    def test_invalid_moves_are_rejected(self):
        with self.assertRaises(InvalidTransitionError):
            self._move(Status.NOTIFIED)

        with self.assertRaises(InvalidTransitionError):
            self._move(Status.DRAFT)

        self._move(Status.CLOSED)
        with self.assertRaises(InvalidTransitionError):
            self._move(Status.ACTIVE)

    def test_draft_activation_sets_initiated_at(self):
        draft = recall_workflow.create_recall(
            company=self.demo.company, title="Draft", severity=Recall.Severity.CLASS_3, reason="Check"
        )
        self.assertIsNone(draft.initiated_at)

        active = recall_workflow.transition_recall(draft.id, target_status=Status.ACTIVE)
        self.assertIsNotNone(active.initiated_at)

    def test_recall_cannot_start_investigating(self):
        with self.assertRaises(ValidationError):
            recall_workflow.create_recall(
                company=self.demo.company,
                title="Bad",
                severity=Recall.Severity.CLASS_1,
                reason="x",
                status=Status.INVESTIGATING,
            )

    def test_duplicate_code_is_rejected(self):
        with self.assertRaises(ValidationError):
            recall_workflow.create_recall(
                company=self.demo.company,
                recall_code="REC-001",
                title="Again",
                severity=Recall.Severity.CLASS_1,
                reason="x",
            )

    def test_severity_is_immutable(self):
        self.recall.severity = Recall.Severity.CLASS_3
        with self.assertRaises(ValidationError):
            self.recall.save()

    def test_resolve_waits_for_responses(self):
        self._move(Status.INVESTIGATING, Status.NOTIFIED)
        notification = recall_workflow.record_notification(recall_id=self.recall.id, customer=self.demo.customer)
        self.assertEqual(notification.customer_name, "CaféX")
        self.assertEqual(notification.contact_email, "orders@cafex.example")

        with self.assertRaises(InvalidTransitionError):
            self._move(Status.RESOLVED)

        recall_workflow.record_response(
            recall_id=self.recall.id, notification_id=notification.id, response_notes="Stock pulled"
        )
        recall = self._move(Status.RESOLVED)
        self.assertEqual(recall.status, Status.RESOLVED)

    @override_settings(TRACEABILITY={"RECALL_REQUIRE_RESPONSES_TO_RESOLVE": False})
    def test_resolve_gate_can_be_disabled(self):
        self._move(Status.INVESTIGATING, Status.NOTIFIED)
        recall_workflow.record_notification(recall_id=self.recall.id, customer_name="Corner Shop")

        recall = self._move(Status.RESOLVED)
        self.assertEqual(recall.status, Status.RESOLVED)

    def test_investigation_fields_update(self):
        recall = recall_workflow.update_investigation(
            self.recall.id, root_cause="Mislabelled sack", corrective_actions="Supplier audit"
        )
        self.assertEqual(recall.root_cause, "Mislabelled sack")
        self.assertEqual(recall.notes, "")


class RegulatorNotificationTests(RecallTestMixin, TestCase):
    def _age(self, days):
        Recall.objects.filter(pk=self.recall.pk).update(initiated_at=timezone.now() - timedelta(days=days))
        self.recall.refresh_from_db()

    def test_overdue_after_window(self):
        self._age(4)
        self.assertTrue(self.recall.is_notification_overdue)
        self.assertTrue(recall_workflow.is_notification_overdue(self.recall))

    def test_not_overdue_inside_window(self):
        self._age(2)
        self.assertFalse(self.recall.is_notification_overdue)

    @override_settings(TRACEABILITY={"REGULATOR_NOTIFICATION_DAYS": 5})
    def test_window_is_configurable(self):
        self._age(4)
        self.assertFalse(self.recall.is_notification_overdue)

    def test_salsa_notification_clears_overdue(self):
        self._age(4)
        recall = recall_workflow.mark_regulator_notified(self.recall.id, regulator="SALSA", reference="S-77")

        self.assertTrue(recall.salsa_notified)
        self.assertEqual(recall.salsa_reference, "S-77")
        self.assertFalse(recall.is_notification_overdue)

        first_at = recall.salsa_notified_at
        recall = recall_workflow.mark_regulator_notified(self.recall.id, regulator="salsa", reference="S-78")
        self.assertEqual(recall.salsa_notified_at, first_at)
        self.assertEqual(recall.salsa_reference, "S-78")

    def test_draft_is_never_overdue(self):
        draft = recall_workflow.create_recall(
            company=self.demo.company, title="Draft", severity=Recall.Severity.CLASS_3, reason="Check"
        )
        self.assertFalse(draft.is_notification_overdue)
        with self.assertRaises(InvalidTransitionError):
            recall_workflow.mark_regulator_notified(draft.id, regulator="fsa")

    def test_unknown_regulator(self):
        with self.assertRaises(ValidationError):
            recall_workflow.mark_regulator_notified(self.recall.id, regulator="ofsted")


class RecallReportTests(RecallTestMixin, TestCase):
    def test_report_unions_allergens(self):
        milk = make_item(self.demo.company, "Milk", unit="L", allergens=["milk"])
        milk_batch = receive(self.demo.supplier, milk, "20", batch_code="RM-MILK")

        self._register(self.demo.finished_batch)
        self._register(milk_batch)
        recall_workflow.record_notification(recall_id=self.recall.id, customer=self.demo.customer)

        report = build_report(self.recall.id)

        self.assertEqual(report["allergen_summary"], ["gluten", "milk"])
        self.assertEqual(report["recall"]["recall_code"], "REC-001")
        self.assertEqual(len(report["affected_batches"]), 2)
        self.assertEqual(len(report["notifications"]), 1)
        self.assertFalse(report["notification_overdue"])
        self.assertEqual({e["event"] for e in report["timeline"]}, {"created", "initiated"})
        # milk (L) cannot join a kg balance
        self.assertEqual(report["balance"]["total_affected"], Decimal("45.000"))
        self.assertEqual(len(report["balance"]["skipped"]), 2)

        rows = {row["batch_code"]: row for row in report["affected_batches"]}
        self.assertEqual(
            rows["FP-001"]["mass_balance"],
            {
                "total_input": Decimal("48.000"),
                "total_output": Decimal("45.000"),
                "variance": Decimal("3.000"),
                "variance_percent": Decimal("6.25"),
                "unit": "kg",
            },
        )
        self.assertIsNone(rows["RM-MILK"]["mass_balance"])

    def test_recall_trace_follows_each_batch_forward(self):
        self._register(self.demo.raw_batch)
        data = recall_trace(self.recall.id)

        self.assertEqual(data["recall_code"], "REC-001")
        labels = {node["label"] for node in data["traces"][0]["nodes"]}
        self.assertEqual(labels, {"RM-001", "PB-01", "FP-001", "CaféX"})

    def test_empty_recall_balance(self):
        balance = recall_balance(self.recall.id)
        self.assertEqual(balance.total_affected, Decimal("0"))
        self.assertIsNone(balance.unit)

    def test_negative_balance_is_carried_as_warning(self):
        self._register(self.demo.finished_batch)

        with mock.patch(
            "traceability.services.reconciliation.sum_quantities",
            side_effect=[Decimal("5"), Decimal("7")],
        ):
            balance = recall_balance(self.recall.id)

        self.assertTrue(balance.has_warning)
        self.assertEqual(balance.unaccounted, Decimal("0.000"))
        self.assertTrue(balance.as_dict()["negative_balance"])
        with self.assertRaises(NegativeBalanceError):
            balance.raise_for_warning()
