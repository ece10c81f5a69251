# production/tests/test_production_service.py

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.models import BatchMovement, StockBatch, StockItem
from inventory.services.exceptions import InsufficientStockError, InvalidTransitionError
from inventory.tests.fixtures import (
    TODAY,
    make_company,
    make_item,
    make_supplier,
    produce,
    receive,
)
from production.models import ProductionBatch
from production.services import production_service

Status = ProductionBatch.Status


class ProductionServiceTests(TestCase):
    """
    GUARANTEES:
    - Inputs consume stock through the batch state machine
    - Removing / adjusting inputs moves stock by the difference
    - Outputs carry production provenance and input allergens
    - Completed / cancelled runs are locked
    """

    def setUp(self):
        self.company = make_company()
        self.supplier = make_supplier(self.company)
        self.flour = make_item(self.company, "Flour", allergens=["gluten"])
        self.milk = make_item(self.company, "Milk", unit="L", allergens=["milk"])
        self.bread = make_item(self.company, "Bread", item_type=StockItem.ItemType.FINISHED_PRODUCT)

        self.flour_batch = receive(self.supplier, self.flour, "50", batch_code="RM-001")
        self.milk_batch = receive(self.supplier, self.milk, "20", batch_code="RM-002")

        self.run = production_service.create_production_batch(
            company=self.company,
            batch_code="PB-01",
            production_date=TODAY,
            planned_quantity="40",
        )
        production_service.start_production(self.run.id)

    def _add(self, batch, qty, **kwargs):
        return production_service.add_input(
            production_batch_id=self.run.id,
            stock_batch_id=batch.id,
            planned_quantity=qty,
            **kwargs,
        )

    # --------------------------------------------------
    # INPUTS
    # --------------------------------------------------

    def test_add_input_consumes_stock(self):
        row = self._add(self.flour_batch, "48")

        self.flour_batch.refresh_from_db()
        self.assertEqual(self.flour_batch.quantity_remaining, Decimal("2.000"))
        self.assertEqual(row.stock_item, self.flour)
        movement = BatchMovement.objects.get(batch=self.flour_batch, movement_type=BatchMovement.MovementType.CONSUMED)
        self.assertEqual(movement.reference_id, str(self.run.id))

    def test_add_input_in_grams(self):
        self._add(self.flour_batch, "1500", unit="g")
        self.flour_batch.refresh_from_db()
        self.assertEqual(self.flour_batch.quantity_remaining, Decimal("48.500"))

    def test_over_consumption_creates_no_input(self):
        with self.assertRaises(InsufficientStockError):
            self._add(self.flour_batch, "51")
        self.assertFalse(self.run.inputs.exists())

    def test_record_actual_quantity_moves_by_delta(self):
        row = self._add(self.flour_batch, "10")

        production_service.record_actual_quantity(row.id, "12")
        self.flour_batch.refresh_from_db()
        self.assertEqual(self.flour_batch.quantity_remaining, Decimal("38.000"))

        production_service.record_actual_quantity(row.id, "9")
        self.flour_batch.refresh_from_db()
        self.assertEqual(self.flour_batch.quantity_remaining, Decimal("41.000"))

    def test_remove_input_restores_stock(self):
        row = self._add(self.flour_batch, "50")
        self.flour_batch.refresh_from_db()
        self.assertEqual(self.flour_batch.status, StockBatch.Status.DEPLETED)

        production_service.remove_input(row.id)

        self.flour_batch.refresh_from_db()
        self.assertEqual(self.flour_batch.quantity_remaining, Decimal("50.000"))
        self.assertEqual(self.flour_batch.status, StockBatch.Status.ACTIVE)
        self.assertFalse(self.run.inputs.exists())

    def test_rework_defaults_source_to_consumed_batch(self):
        row = self._add(self.flour_batch, "5", is_rework=True)
        self.assertTrue(row.is_rework)
        self.assertEqual(row.rework_source_batch, self.flour_batch)

    def test_rework_source_requires_rework_flag(self):
        with self.assertRaises(ValidationError):
            self._add(self.flour_batch, "5", rework_source_batch_id=self.milk_batch.id)

    def test_input_from_other_company_is_rejected(self):
        other = make_company("Other Co")
        other_batch = receive(make_supplier(other), make_item(other, "Salt"), "5")
        with self.assertRaises(ValidationError):
            self._add(other_batch, "1")

    # --------------------------------------------------
    # OUTPUTS + COMPLETION
    # --------------------------------------------------

    def test_output_inherits_input_allergens(self):
        self._add(self.flour_batch, "30")
        self._add(self.milk_batch, "5")

        output = production_service.record_output(
            production_batch_id=self.run.id,
            stock_item=self.bread,
            quantity="32",
            batch_code="FP-001",
        )

        self.assertEqual(output.allergens, ["gluten", "milk"])
        self.assertEqual(output.production_batch, self.run)
        self.assertIsNone(output.delivery_line)
        self.assertEqual(output.quantity_remaining, Decimal("32.000"))
        self.assertTrue(
            BatchMovement.objects.filter(batch=output, movement_type=BatchMovement.MovementType.PRODUCED).exists()
        )

    def test_complete_totals_outputs_and_yield(self):
        self._add(self.flour_batch, "48")
        production_service.record_output(
            production_batch_id=self.run.id, stock_item=self.bread, quantity="30", batch_code="FP-A"
        )
        production_service.record_output(
            production_batch_id=self.run.id, stock_item=self.bread, quantity="6000", unit="g", batch_code="FP-B"
        )

        run = production_service.complete_production(self.run.id)

        self.assertEqual(run.status, Status.COMPLETED)
        self.assertIsNotNone(run.completed_at)
        self.assertEqual(run.actual_quantity, Decimal("36.000"))
        self.assertEqual(run.yield_percent, Decimal("90.00"))
        self.assertEqual(run.allergens, ["gluten"])

    def test_completed_run_is_locked(self):
        run, _ = produce(
            self.company,
            code="PB-02",
            inputs=[(self.flour_batch, "10")],
            output_item=self.bread,
            output_quantity="9",
            output_code="FP-002",
        )
        row = run.inputs.get()

        with self.assertRaises(InvalidTransitionError):
            production_service.add_input(
                production_batch_id=run.id,
                stock_batch_id=self.flour_batch.id,
                planned_quantity="1",
            )
        with self.assertRaises(InvalidTransitionError):
            production_service.remove_input(row.id)
        with self.assertRaises(InvalidTransitionError):
            production_service.cancel_production(run.id)

    def test_cancel_keeps_consumed_stock(self):
        self._add(self.flour_batch, "10")
        run = production_service.cancel_production(self.run.id, reason="oven fault")

        self.assertEqual(run.status, Status.CANCELLED)
        self.assertIn("oven fault", run.notes)
        self.flour_batch.refresh_from_db()
        self.assertEqual(self.flour_batch.quantity_remaining, Decimal("40.000"))

    def test_planned_run_cannot_complete(self):
        planned = production_service.create_production_batch(
            company=self.company, batch_code="PB-09", production_date=TODAY
        )
        with self.assertRaises(InvalidTransitionError):
            production_service.complete_production(planned.id)

    def test_duplicate_run_code_is_rejected(self):
        with self.assertRaises(ValidationError):
            production_service.create_production_batch(
                company=self.company, batch_code="PB-01", production_date=TODAY
            )
