# traceability/tests/test_api.py

from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from inventory.tests.fixtures import TODAY, make_user
from permissions.roles import ROLE_COMPLIANCE, ROLE_DISPATCH, ROLE_VIEWER
from traceability.services.demo_scenario import seed_farmco_scenario

BACKWARD_URL = "/api/traceability/backward/"
FORWARD_URL = "/api/traceability/forward/"
EXERCISES_URL = "/api/traceability/exercises/"


class TraceAPITests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.demo = seed_farmco_scenario(today=TODAY)

        self.viewer = make_user("viewer", ROLE_VIEWER)
        self.compliance = make_user("compliance", ROLE_COMPLIANCE)
        self.dispatcher = make_user("dispatcher", ROLE_DISPATCH)

    def test_backward_trace_payload(self):
        self.client.force_authenticate(self.viewer)
        res = self.client.get(BACKWARD_URL, {"batch_id": str(self.demo.finished_batch.id)})

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["direction"], "backward")
        self.assertEqual(len(res.data["nodes"]), 5)
        self.assertEqual(res.data["mass_balance"]["variance_percent"], Decimal("6.25"))
        self.assertEqual(res.data["mass_balance"]["unit"], "kg")

    def test_forward_trace_payload(self):
        self.client.force_authenticate(self.compliance)
        res = self.client.get(FORWARD_URL, {"batch_id": str(self.demo.raw_batch.id)})

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        node_types = {node["type"] for node in res.data["nodes"]}
        self.assertEqual(
            node_types,
            {"raw_material_batch", "production_batch", "finished_product_batch", "customer"},
        )

    def test_missing_batch_is_404(self):
        self.client.force_authenticate(self.viewer)
        res = self.client.get(BACKWARD_URL, {"batch_id": "00000000-0000-0000-0000-000000000000"})

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["error"]["code"], "not_found")

    def test_batch_id_is_required(self):
        self.client.force_authenticate(self.viewer)
        res = self.client.get(BACKWARD_URL)
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_trace_requires_trace_capability(self):
        self.client.force_authenticate(self.dispatcher)
        res = self.client.get(BACKWARD_URL, {"batch_id": str(self.demo.finished_batch.id)})
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_exercise_flow(self):
        self.client.force_authenticate(self.viewer)
        res = self.client.post(EXERCISES_URL, {"batch_id": str(self.demo.finished_batch.id)}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.compliance)
        res = self.client.post(EXERCISES_URL, {"batch_id": str(self.demo.finished_batch.id)}, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["started_by"], "compliance")
        self.assertIsNone(res.data["within_target"])

        res = self.client.post(f"{EXERCISES_URL}{res.data['id']}/complete/", {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["backward_node_count"], 5)
        self.assertTrue(res.data["within_target"])

        self.client.force_authenticate(self.viewer)
        listing = self.client.get(EXERCISES_URL)
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual(listing.data["count"], 1)
