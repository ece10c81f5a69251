# inventory/tests/test_intake_dispatch.py

from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.models import BatchMovement, Delivery, StockBatch, Supplier
from inventory.services import batch_state
from inventory.services.dispatch import dispatched_total, record_dispatch
from inventory.services.exceptions import IncompatibleUnitsError, InvalidTransitionError
from inventory.services.stock_intake import intake_delivery
from inventory.tests.fixtures import (
    TODAY,
    make_company,
    make_customer,
    make_item,
    make_supplier,
    receive,
)


class DeliveryIntakeTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.supplier = make_supplier(self.company)
        self.flour = make_item(self.company, "Flour", allergens=["Gluten"])
        self.milk = make_item(self.company, "Milk", unit="L", allergens=["milk"])

    def test_each_line_creates_batch_and_received_movement(self):
        result = intake_delivery(
            supplier=self.supplier,
            delivery_date=TODAY,
            reference="DN-991",
            lines=[
                {"stock_item": self.flour, "quantity": "25", "batch_code": "RM-F1"},
                {"stock_item_id": str(self.milk.id), "quantity": "12", "unit": "litre"},
            ],
        )

        self.assertEqual(len(result.batches), 2)
        flour_batch, milk_batch = result.batches

        self.assertEqual(flour_batch.batch_code, "RM-F1")
        self.assertEqual(flour_batch.allergens, ["gluten"])
        self.assertEqual(milk_batch.unit, "L")
        self.assertTrue(milk_batch.batch_code.startswith("RM-"))

        for batch in result.batches:
            self.assertEqual(batch.quantity_remaining, batch.quantity_received)
            self.assertEqual(batch.delivery_line.delivery, result.delivery)
            self.assertTrue(
                BatchMovement.objects.filter(batch=batch, movement_type=BatchMovement.MovementType.RECEIVED).exists()
            )

    def test_bad_line_rolls_back_whole_delivery(self):
        with self.assertRaises(ValidationError):
            intake_delivery(
                supplier=self.supplier,
                delivery_date=TODAY,
                lines=[
                    {"stock_item": self.flour, "quantity": "25"},
                    {"stock_item": self.flour, "quantity": "-1"},
                ],
            )

        self.assertFalse(Delivery.objects.exists())
        self.assertFalse(StockBatch.objects.exists())

    def test_duplicate_batch_code_is_rejected(self):
        receive(self.supplier, self.flour, "1", batch_code="RM-DUP")
        with self.assertRaises(ValidationError):
            receive(self.supplier, self.flour, "1", batch_code="RM-DUP")

    def test_unknown_unit_is_rejected(self):
        with self.assertRaises(IncompatibleUnitsError):
            receive(self.supplier, self.flour, "1", unit="bushel")

    def test_suspended_supplier_cannot_deliver(self):
        suspended = make_supplier(self.company, "BadFarm", status=Supplier.ApprovalStatus.SUSPENDED)
        with self.assertRaises(ValidationError):
            receive(suspended, self.flour, "1")

    def test_item_from_other_company_is_rejected(self):
        other_item = make_item(make_company("Other Co"), "Sugar")
        with self.assertRaises(ValidationError):
            receive(self.supplier, other_item, "1")


class DispatchTests(TestCase):
    """
    Dispatch records distribution. It does not move stock.
    """

    def setUp(self):
        self.company = make_company()
        self.supplier = make_supplier(self.company)
        self.customer = make_customer(self.company)
        self.item = make_item(self.company, "Jam", allergens=[])
        self.batch = receive(self.supplier, self.item, "10", batch_code="JAM-1")

    def test_dispatch_does_not_decrement_remaining(self):
        record = record_dispatch(
            batch=self.batch,
            customer=self.customer,
            quantity="4",
            dispatch_date=TODAY,
        )

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, Decimal("10.000"))
        self.assertEqual(record.customer_name, self.customer.name)
        self.assertEqual(dispatched_total(self.batch), Decimal("4.000"))

    def test_dispatch_total_bounded_by_received(self):
        record_dispatch(batch=self.batch, customer_name="Shop A", quantity="6", dispatch_date=TODAY)
        record_dispatch(batch=self.batch, customer_name="Shop B", quantity="4000", unit="g", dispatch_date=TODAY)

        with self.assertRaises(ValidationError):
            record_dispatch(batch=self.batch, customer_name="Shop C", quantity="1", unit="g", dispatch_date=TODAY)

    def test_quarantined_batch_cannot_ship(self):
        batch_state.quarantine(self.batch.id)
        with self.assertRaises(InvalidTransitionError):
            record_dispatch(batch=self.batch, customer_name="Shop", quantity="1", dispatch_date=TODAY)

    def test_depleted_batch_can_still_ship(self):
        batch_state.consume(self.batch.id, "10")
        record = record_dispatch(
            batch=self.batch,
            customer_name="Shop",
            quantity="2",
            dispatch_date=TODAY + timedelta(days=1),
        )
        self.assertEqual(record.quantity, Decimal("2.000"))

    def test_customer_name_or_customer_required(self):
        with self.assertRaises(ValidationError):
            record_dispatch(batch=self.batch, quantity="1", dispatch_date=TODAY)
