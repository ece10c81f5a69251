# inventory/tests/fixtures.py

"""
Shared builders for tests across the traceability apps.

Everything is created through the real services so ledgers and
statuses match production behaviour.
"""

from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

from inventory.models import Company, Customer, StockItem, Supplier
from inventory.services.stock_intake import intake_delivery
from production.services import production_service

User = get_user_model()

TODAY = date(2026, 3, 2)


def make_user(username: str, role: str | None = None, *, superuser: bool = False):
    if superuser:
        return User.objects.create_superuser(username=username, email=f"{username}@example.com", password="pass12345")

    user = User.objects.create_user(username=username, email=f"{username}@example.com", password="pass12345")
    if role:
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
    return user


def make_company(name: str = "Acme Foods"):
    return Company.objects.create(name=name)


def make_supplier(company, name: str = "FarmCo", status=Supplier.ApprovalStatus.APPROVED):
    return Supplier.objects.create(company=company, name=name, approval_status=status)


def make_customer(company, name: str = "CaféX"):
    return Customer.objects.create(company=company, name=name, contact_email="buyer@example.com")


def make_item(company, name: str, *, unit: str = "kg", item_type=StockItem.ItemType.RAW_MATERIAL, allergens=None):
    return StockItem.objects.create(
        company=company,
        name=name,
        item_type=item_type,
        unit=unit,
        allergens=list(allergens or []),
    )


def receive(supplier, item, quantity, *, unit: str | None = None, batch_code: str = "", use_by_date=None):
    """Deliver one line and return the created StockBatch."""
    result = intake_delivery(
        supplier=supplier,
        delivery_date=TODAY - timedelta(days=3),
        lines=[
            {
                "stock_item": item,
                "quantity": str(quantity),
                "unit": unit or item.unit,
                "batch_code": batch_code,
                "use_by_date": use_by_date,
            }
        ],
    )
    return result.batches[0]


def produce(company, *, code: str, inputs, output_item, output_quantity, output_code: str, unit: str = "kg", complete: bool = True):
    """
    Run one production batch.

    inputs: iterable of (stock_batch, quantity) or (stock_batch, quantity, is_rework)
    Returns (production_batch, output_batch).
    """
    run = production_service.create_production_batch(
        company=company,
        batch_code=code,
        production_date=TODAY - timedelta(days=1),
        planned_quantity=output_quantity,
        unit=unit,
    )
    production_service.start_production(run.id)

    for entry in inputs:
        batch, quantity = entry[0], entry[1]
        is_rework = entry[2] if len(entry) > 2 else False
        production_service.add_input(
            production_batch_id=run.id,
            stock_batch_id=batch.id,
            planned_quantity=Decimal(str(quantity)),
            unit=batch.unit,
            is_rework=is_rework,
        )

    output = production_service.record_output(
        production_batch_id=run.id,
        stock_item=output_item,
        quantity=str(output_quantity),
        unit=unit,
        batch_code=output_code,
        use_by_date=TODAY + timedelta(days=5),
    )

    if complete:
        run = production_service.complete_production(run.id)
    return run, output
