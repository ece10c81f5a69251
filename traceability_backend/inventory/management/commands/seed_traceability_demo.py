# inventory/management/commands/seed_traceability_demo.py

"""
SEED TRACEABILITY DEMO

Creates the FarmCo → RM-001 → PB-01 → FP-001 → CaféX chain and prints
the backward trace of FP-001.

Rules:
- Refuses to run twice for the same company name.
"""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from inventory.models import Company
from traceability.services.demo_scenario import seed_farmco_scenario
from traceability.services.graph_builder import trace_backward


class Command(BaseCommand):
    help = "Seed the FarmCo / CaféX traceability demo chain."

    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            type=str,
            default="Demo Bakery",
            help="Company name to create the demo under.",
        )

    def handle(self, *args, **options):
        name = (options.get("company") or "").strip()
        if not name:
            raise CommandError("--company cannot be blank")
        if Company.objects.filter(name=name).exists():
            raise CommandError(f"Company '{name}' already exists; demo not re-seeded.")

        scenario = seed_farmco_scenario(company_name=name, performed_by="seed_traceability_demo")
        result = trace_backward(scenario.finished_batch.id)

        self.stdout.write(f"company:  {scenario.company.name} ({scenario.company.id})")
        self.stdout.write(f"raw:      {scenario.raw_batch.batch_code} [{scenario.raw_batch.status}] {scenario.raw_batch.id}")
        self.stdout.write(f"finished: {scenario.finished_batch.batch_code} {scenario.finished_batch.id}")
        self.stdout.write(f"trace:    {len(result.nodes)} nodes, {len(result.edges)} edges")
        if result.mass_balance is not None:
            mb = result.mass_balance
            self.stdout.write(
                f"balance:  in {mb.total_input} {mb.unit} / out {mb.total_output} {mb.unit} "
                f"/ variance {mb.variance} ({mb.variance_percent}%)"
            )

        self.stdout.write(self.style.SUCCESS("Traceability demo seeded."))
