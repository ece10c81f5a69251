# inventory/tests/test_provenance.py

import random
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.models import Delivery, DeliveryLine, StockBatch
from inventory.tests.fixtures import TODAY, make_company, make_item, make_supplier, receive
from production.services import production_service


class ProvenanceTests(TestCase):
    """
    Every StockBatch has exactly one provenance:
    a delivery line or a production batch.
    """

    def setUp(self):
        self.company = make_company()
        self.supplier = make_supplier(self.company)
        self.item = make_item(self.company, "Oats")
        self.run = production_service.create_production_batch(
            company=self.company,
            batch_code="PB-PROV",
            production_date=TODAY,
        )

    def _new_line(self):
        delivery = Delivery.objects.create(supplier=self.supplier, delivery_date=TODAY)
        return DeliveryLine.objects.create(delivery=delivery)

    def _build(self, code, *, with_line: bool, with_run: bool):
        return StockBatch(
            company=self.company,
            stock_item=self.item,
            batch_code=code,
            quantity_received=Decimal("1"),
            quantity_remaining=Decimal("1"),
            unit="kg",
            delivery_line=self._new_line() if with_line else None,
            production_batch=self.run if with_run else None,
        )

    def test_delivered_batch_has_delivery_provenance(self):
        batch = receive(self.supplier, self.item, "3")
        self.assertTrue(batch.is_delivered)
        self.assertFalse(batch.is_produced)
        self.assertEqual(batch.provenance, "delivery")

    def test_random_provenance_combinations(self):
        rng = random.Random(7)
        for i in range(12):
            with_line = rng.choice([True, False])
            with_run = rng.choice([True, False])
            batch = self._build(f"P-{i}", with_line=with_line, with_run=with_run)

            with self.subTest(with_line=with_line, with_run=with_run):
                if with_line != with_run:
                    batch.save()
                    self.assertTrue(StockBatch.objects.filter(pk=batch.pk).exists())
                else:
                    with self.assertRaises(ValidationError):
                        batch.save()

    def test_quantity_received_is_immutable(self):
        batch = receive(self.supplier, self.item, "3")
        batch.quantity_received = Decimal("4")
        with self.assertRaises(ValidationError):
            batch.save()

    def test_remaining_cannot_exceed_received(self):
        batch = self._build("P-OVER", with_line=True, with_run=False)
        batch.quantity_remaining = Decimal("2")
        with self.assertRaises(ValidationError):
            batch.save()
