# traceability/apps.py

"""
TRACEABILITY APP CONFIG

Lineage traversal (backward / forward traces), mass balance,
readiness summary and mock recall exercises.
"""

from django.apps import AppConfig


class TraceabilityConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "traceability"
    verbose_name = "Traceability"
