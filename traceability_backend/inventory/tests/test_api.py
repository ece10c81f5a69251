# inventory/tests/test_api.py

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from inventory.models import StockBatch
from inventory.tests.fixtures import (
    TODAY,
    make_company,
    make_customer,
    make_item,
    make_supplier,
    make_user,
    receive,
)
from permissions.roles import ROLE_COMPLIANCE, ROLE_DISPATCH, ROLE_VIEWER

BATCHES_URL = "/api/inventory/stock-batches/"
DELIVERIES_URL = "/api/inventory/deliveries/"


class InventoryAPITests(TestCase):
    """
    GUARANTEES:
    - Anonymous users are rejected
    - Capabilities gate every write
    - Domain errors use the canonical {"error": {...}} body
    """

    def setUp(self):
        self.client = APIClient()

        self.company = make_company()
        self.supplier = make_supplier(self.company)
        self.customer = make_customer(self.company)
        self.flour = make_item(self.company, "Flour", allergens=["gluten"])
        self.batch = receive(self.supplier, self.flour, "20", batch_code="RM-API")

        self.viewer = make_user("viewer", ROLE_VIEWER)
        self.dispatcher = make_user("dispatcher", ROLE_DISPATCH)
        self.compliance = make_user("compliance", ROLE_COMPLIANCE)
        self.nobody = make_user("nobody")

    def _detail(self, suffix=""):
        return f"{BATCHES_URL}{self.batch.id}/{suffix}"

    # --------------------------------------------------
    # AUTH
    # --------------------------------------------------

    def test_anonymous_is_rejected(self):
        res = self.client.get(BATCHES_URL)
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_user_without_role_is_forbidden(self):
        self.client.force_authenticate(self.nobody)
        res = self.client.get(BATCHES_URL)
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_viewer_can_list_batches(self):
        self.client.force_authenticate(self.viewer)
        res = self.client.get(BATCHES_URL)

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 1)
        row = res.data["results"][0]
        self.assertEqual(row["batch_code"], "RM-API")
        self.assertEqual(row["provenance"], "delivery")
        self.assertEqual(row["supplier_name"], "FarmCo")

    def test_viewer_cannot_quarantine(self):
        self.client.force_authenticate(self.viewer)
        res = self.client.post(self._detail("quarantine/"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    # --------------------------------------------------
    # STATE ACTIONS
    # --------------------------------------------------

    def test_compliance_quarantine_is_idempotent(self):
        self.client.force_authenticate(self.compliance)

        first = self.client.post(self._detail("quarantine/"), {"reason": "swab fail"}, format="json")
        second = self.client.post(self._detail("quarantine/"), {}, format="json")

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertTrue(first.data["applied"])
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertFalse(second.data["applied"])

        movements = self.client.get(self._detail("movements/"))
        types = [m["movement_type"] for m in movements.data["results"]]
        self.assertEqual(types, ["received", "quarantined"])

    def test_invalid_transition_uses_error_body(self):
        self.client.force_authenticate(self.compliance)
        res = self.client.post(self._detail("release/"), {}, format="json")

        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["error"]["code"], "invalid_transition")
        self.assertIn("RM-API", res.data["error"]["message"])

    # --------------------------------------------------
    # DISPATCH + INTAKE
    # --------------------------------------------------

    def test_dispatch_records_customer(self):
        self.client.force_authenticate(self.dispatcher)
        res = self.client.post(
            self._detail("dispatch/"),
            {"customer_id": str(self.customer.id), "quantity": "5", "dispatch_date": TODAY.isoformat()},
            format="json",
        )

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["customer_name"], "CaféX")
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, self.batch.quantity_received)

    def test_dispatch_over_received_is_validation_error(self):
        self.client.force_authenticate(self.dispatcher)
        res = self.client.post(
            self._detail("dispatch/"),
            {"customer_name": "Shop", "quantity": "25", "dispatch_date": TODAY.isoformat()},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["error"]["code"], "validation_error")

    def test_delivery_intake_endpoint(self):
        self.client.force_authenticate(self.dispatcher)
        res = self.client.post(
            DELIVERIES_URL,
            {
                "supplier_id": str(self.supplier.id),
                "delivery_date": TODAY.isoformat(),
                "lines": [{"stock_item_id": str(self.flour.id), "quantity": "5", "batch_code": "RM-NEW"}],
            },
            format="json",
        )

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertTrue(StockBatch.objects.filter(batch_code="RM-NEW").exists())

    def test_delivery_with_unknown_supplier_is_404(self):
        self.client.force_authenticate(self.dispatcher)
        res = self.client.post(
            DELIVERIES_URL,
            {
                "supplier_id": "00000000-0000-0000-0000-000000000000",
                "delivery_date": TODAY.isoformat(),
                "lines": [{"stock_item_id": str(self.flour.id), "quantity": "5"}],
            },
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["error"]["code"], "not_found")
