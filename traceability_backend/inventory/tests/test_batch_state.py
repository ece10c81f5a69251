# inventory/tests/test_batch_state.py

import random
import threading
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature

from inventory.models import BatchMovement, StockBatch
from inventory.services import batch_state
from inventory.services.exceptions import (
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
)
from inventory.tests.fixtures import (
    TODAY,
    make_company,
    make_item,
    make_supplier,
    receive,
)

Status = StockBatch.Status
MovementType = BatchMovement.MovementType


class BatchStateTests(TestCase):
    """
    GUARANTEES:
    - remaining never negative, never above received
    - DEPLETED exactly at zero
    - every mutation leaves a ledger row
    - quarantine is idempotent
    """

    def setUp(self):
        self.company = make_company()
        self.supplier = make_supplier(self.company)
        self.flour = make_item(self.company, "Flour", allergens=["gluten"])
        self.batch = receive(self.supplier, self.flour, "10", batch_code="RM-100")

    def _movements(self, movement_type):
        return BatchMovement.objects.filter(batch=self.batch, movement_type=movement_type)

    # --------------------------------------------------
    # CONSUME
    # --------------------------------------------------

    def test_consume_decrements_and_records_movement(self):
        change = batch_state.consume(self.batch.id, Decimal("4"))

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, Decimal("6.000"))
        self.assertEqual(self.batch.status, Status.ACTIVE)
        self.assertEqual(change.movement.movement_type, MovementType.CONSUMED)
        self.assertEqual(change.movement.direction, BatchMovement.Direction.OUT)

    def test_consume_in_other_unit_is_converted(self):
        batch_state.consume(self.batch.id, 2500, "g")
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, Decimal("7.500"))

    def test_consume_to_zero_depletes(self):
        batch_state.consume(self.batch.id, "10")
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, Decimal("0"))
        self.assertEqual(self.batch.status, Status.DEPLETED)

    def test_over_consumption_is_rejected_without_side_effects(self):
        with self.assertRaises(InsufficientStockError):
            batch_state.consume(self.batch.id, "10.001")

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, Decimal("10.000"))
        self.assertFalse(self._movements(MovementType.CONSUMED).exists())

    def test_quarantined_batch_cannot_be_consumed(self):
        batch_state.quarantine(self.batch.id)
        with self.assertRaises(InvalidTransitionError):
            batch_state.consume(self.batch.id, "1")

    def test_unknown_batch_is_not_found(self):
        with self.assertRaises(NotFoundError):
            batch_state.consume("00000000-0000-0000-0000-000000000000", "1")

    def test_random_consumption_never_overdraws(self):
        rng = random.Random(20260302)
        remaining = Decimal("10.000")

        for _ in range(40):
            qty = Decimal(rng.randint(1, 3000)) / Decimal("1000")
            before = remaining
            if qty > remaining:
                with self.assertRaises(InsufficientStockError):
                    batch_state.consume(self.batch.id, qty)
            elif remaining > 0:
                batch_state.consume(self.batch.id, qty)
                remaining -= qty

            self.batch.refresh_from_db()
            self.assertEqual(self.batch.quantity_remaining, remaining)
            self.assertLessEqual(self.batch.quantity_remaining, before)
            self.assertGreaterEqual(self.batch.quantity_remaining, Decimal("0"))
            expected = Status.DEPLETED if remaining == 0 else Status.ACTIVE
            self.assertEqual(self.batch.status, expected)
            if remaining == 0:
                break

    def test_quantity_rounding_to_zero_is_rejected(self):
        # 0.4 g is 0.0004 kg, below the 3 dp storage precision
        with self.assertRaises(ValidationError):
            batch_state.consume(self.batch.id, "0.4", "g")

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, Decimal("10.000"))
        self.assertFalse(self._movements(MovementType.CONSUMED).exists())

    def test_remaining_matches_movement_ledger(self):
        rng = random.Random(7)
        consumed = Decimal("0")

        for _ in range(60):
            if consumed > 0 and rng.random() < 0.35:
                qty = min(consumed, Decimal(rng.randint(1, 1500)) / Decimal("1000"))
                batch_state.restore_consumption(self.batch.id, qty)
                consumed -= qty
                continue

            qty = Decimal(rng.randint(1, 1500)) / Decimal("1000")
            try:
                batch_state.consume(self.batch.id, qty)
            except (InsufficientStockError, InvalidTransitionError):
                continue
            consumed += qty

        ledger_out = sum(m.quantity for m in self._movements(MovementType.CONSUMED))
        ledger_in = sum(m.quantity for m in self._movements(MovementType.CONSUMPTION_REVERSED))

        self.batch.refresh_from_db()
        self.assertEqual(
            self.batch.quantity_remaining,
            self.batch.quantity_received - ledger_out + ledger_in,
        )
        self.assertEqual(self.batch.quantity_remaining, Decimal("10.000") - consumed)

    # --------------------------------------------------
    # RESTORE
    # --------------------------------------------------

    def test_restore_reactivates_depleted_batch(self):
        batch_state.consume(self.batch.id, "10")
        batch_state.restore_consumption(self.batch.id, "3")

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, Status.ACTIVE)
        self.assertEqual(self.batch.quantity_remaining, Decimal("3.000"))
        self.assertTrue(self._movements(MovementType.CONSUMPTION_REVERSED).exists())

    def test_restore_cannot_exceed_received(self):
        batch_state.consume(self.batch.id, "1")
        with self.assertRaises(ValidationError):
            batch_state.restore_consumption(self.batch.id, "2")

    # --------------------------------------------------
    # QUARANTINE / RELEASE / WRITE-OFF
    # --------------------------------------------------

    def test_quarantine_is_idempotent(self):
        first = batch_state.quarantine(self.batch.id, reference_type="recall", reference_id="r-1")
        second = batch_state.quarantine(self.batch.id, reference_type="recall", reference_id="r-1")

        self.assertTrue(first.applied)
        self.assertFalse(second.applied)
        self.assertIn("quarantined", second.detail)
        self.assertEqual(self._movements(MovementType.QUARANTINED).count(), 1)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, Status.QUARANTINED)
        self.assertEqual(self.batch.quantity_remaining, Decimal("10.000"))

    def test_quarantine_of_depleted_batch_is_noop(self):
        batch_state.consume(self.batch.id, "10")
        outcome = batch_state.quarantine(self.batch.id)

        self.assertFalse(outcome.applied)
        self.assertEqual(outcome.batch.status, Status.DEPLETED)

    def test_release_returns_to_active(self):
        batch_state.quarantine(self.batch.id)
        batch_state.release(self.batch.id)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, Status.ACTIVE)
        self.assertEqual(self._movements(MovementType.RELEASED).count(), 1)

    def test_release_requires_quarantine(self):
        with self.assertRaises(InvalidTransitionError):
            batch_state.release(self.batch.id)

    def test_destroy_writes_off_remaining(self):
        batch_state.consume(self.batch.id, "4")
        batch_state.quarantine(self.batch.id)
        change = batch_state.destroy(self.batch.id)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, Status.DESTROYED)
        self.assertEqual(self.batch.quantity_remaining, Decimal("0"))
        self.assertEqual(change.quantity, Decimal("6.000"))
        self.assertEqual(change.movement.movement_type, MovementType.DESTROYED)

    def test_active_batch_cannot_be_destroyed_directly(self):
        with self.assertRaises(InvalidTransitionError):
            batch_state.destroy(self.batch.id)

    def test_returned_is_terminal(self):
        batch_state.quarantine(self.batch.id)
        batch_state.mark_returned(self.batch.id)

        with self.assertRaises(InvalidTransitionError):
            batch_state.release(self.batch.id)
        with self.assertRaises(InvalidTransitionError):
            batch_state.restore_consumption(self.batch.id, "1")

    # --------------------------------------------------
    # EXPIRY
    # --------------------------------------------------

    def test_expire_due_batches_only_touches_past_use_by(self):
        stale = receive(self.supplier, self.flour, "5", batch_code="RM-OLD", use_by_date=TODAY - timedelta(days=1))
        fresh = receive(self.supplier, self.flour, "5", batch_code="RM-NEW", use_by_date=TODAY + timedelta(days=1))

        expired = batch_state.expire_due_batches(today=TODAY)

        self.assertEqual([b.batch_code for b in expired], ["RM-OLD"])
        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, Status.EXPIRED)
        self.assertEqual(fresh.status, Status.ACTIVE)

        # expired stock can only be destroyed
        with self.assertRaises(InvalidTransitionError):
            batch_state.consume(stale.id, "1")
        batch_state.destroy(stale.id)


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentConsumptionTests(TransactionTestCase):
    """Two runs racing for the same stock: the row lock lets exactly one win."""

    def setUp(self):
        company = make_company()
        supplier = make_supplier(company)
        flour = make_item(company, "Flour")
        self.batch = receive(supplier, flour, "10", batch_code="RM-RACE")

    def test_competing_consumptions_do_not_lose_updates(self):
        barrier = threading.Barrier(2)
        outcomes = []

        def worker():
            try:
                barrier.wait()
                batch_state.consume(self.batch.id, "6")
                outcomes.append("ok")
            except InsufficientStockError:
                outcomes.append("short")
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes), ["ok", "short"])
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, Decimal("4.000"))
        self.assertEqual(
            BatchMovement.objects.filter(batch=self.batch, movement_type=MovementType.CONSUMED).count(),
            1,
        )
