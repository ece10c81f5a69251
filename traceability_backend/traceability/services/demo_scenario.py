# traceability/services/demo_scenario.py

"""
DEMO SCENARIO: FarmCo → RM-001 → PB-01 → FP-001 → CaféX

- FarmCo delivers RM-001 (50 kg flour)
- PB-01 consumes 48 kg of RM-001 and outputs FP-001 (45 kg bread)
- FP-001 is dispatched 45 kg to CaféX

Every step goes through the real services, so the ledger, statuses and
allergens are exactly what production use would produce.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from django.db import transaction

from inventory.models import Company, Customer, StockBatch, StockItem, Supplier
from inventory.services.dispatch import record_dispatch
from inventory.services.stock_intake import intake_delivery
from production.models import ProductionBatch
from production.services import production_service


@dataclass(frozen=True)
class DemoScenario:
    company: Company
    supplier: Supplier
    customer: Customer
    raw_batch: StockBatch
    production_batch: ProductionBatch
    finished_batch: StockBatch


@transaction.atomic
def seed_farmco_scenario(*, company_name: str = "Demo Bakery", today: date | None = None, performed_by: str = "") -> DemoScenario:
    today = today or date.today()

    company = Company.objects.create(name=company_name)
    supplier = Supplier.objects.create(
        company=company,
        name="FarmCo",
        approval_status=Supplier.ApprovalStatus.APPROVED,
    )
    customer = Customer.objects.create(company=company, name="CaféX", contact_email="orders@cafex.example")

    flour = StockItem.objects.create(
        company=company,
        name="Flour",
        item_type=StockItem.ItemType.RAW_MATERIAL,
        unit="kg",
        allergens=["gluten"],
    )
    bread = StockItem.objects.create(
        company=company,
        name="Bread",
        item_type=StockItem.ItemType.FINISHED_PRODUCT,
        unit="kg",
    )

    intake = intake_delivery(
        supplier=supplier,
        delivery_date=today - timedelta(days=2),
        reference="DN-0001",
        lines=[
            {
                "stock_item": flour,
                "quantity": "50",
                "unit": "kg",
                "batch_code": "RM-001",
                "best_before_date": today + timedelta(days=180),
            }
        ],
        performed_by=performed_by,
    )
    raw_batch = intake.batches[0]

    run = production_service.create_production_batch(
        company=company,
        batch_code="PB-01",
        recipe_id="bread-white",
        production_date=today - timedelta(days=1),
        planned_quantity="45",
        unit="kg",
    )
    production_service.start_production(run.id)
    production_service.add_input(
        production_batch_id=run.id,
        stock_batch_id=raw_batch.id,
        planned_quantity="48",
        unit="kg",
        performed_by=performed_by,
    )
    finished_batch = production_service.record_output(
        production_batch_id=run.id,
        stock_item=bread,
        quantity="45",
        unit="kg",
        batch_code="FP-001",
        use_by_date=today + timedelta(days=5),
        performed_by=performed_by,
    )
    run = production_service.complete_production(run.id)

    record_dispatch(
        batch=finished_batch,
        customer=customer,
        quantity="45",
        unit="kg",
        dispatch_date=today,
        reference="INV-0001",
    )

    raw_batch.refresh_from_db()
    finished_batch.refresh_from_db()
    return DemoScenario(
        company=company,
        supplier=supplier,
        customer=customer,
        raw_batch=raw_batch,
        production_batch=run,
        finished_batch=finished_batch,
    )
