# inventory/tests/test_commands.py

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from inventory.models import StockBatch
from inventory.tests.fixtures import TODAY, make_company, make_item, make_supplier, receive


class ExpireBatchesCommandTests(TestCase):
    def setUp(self):
        company = make_company()
        item = make_item(company, "Cream", unit="L", allergens=["milk"])
        self.batch = receive(make_supplier(company), item, "5", batch_code="CR-1", use_by_date=TODAY - timedelta(days=1))

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command("expire_batches", "--dry-run", "--date", TODAY.isoformat(), stdout=out)

        self.assertIn("would expire: CR-1", out.getvalue())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, StockBatch.Status.ACTIVE)

    def test_expires_and_is_idempotent(self):
        call_command("expire_batches", "--date", TODAY.isoformat(), stdout=StringIO())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, StockBatch.Status.EXPIRED)

        out = StringIO()
        call_command("expire_batches", "--date", TODAY.isoformat(), stdout=out)
        self.assertIn("Expired 0 batch(es).", out.getvalue())

    def test_bad_date(self):
        with self.assertRaises(CommandError):
            call_command("expire_batches", "--date", "yesterday", stdout=StringIO())


class SeedDemoCommandTests(TestCase):
    def test_seeds_once(self):
        out = StringIO()
        call_command("seed_traceability_demo", "--company", "Bakery One", stdout=out)

        self.assertIn("5 nodes", out.getvalue())
        self.assertIn("6.25%", out.getvalue())
        self.assertTrue(StockBatch.objects.filter(batch_code="FP-001").exists())

        with self.assertRaises(CommandError):
            call_command("seed_traceability_demo", "--company", "Bakery One", stdout=StringIO())
