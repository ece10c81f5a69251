# recalls/apps.py

"""
RECALLS APP CONFIG

Recall / withdrawal workflow: affected batches, customer notifications,
regulator flags, recovery balance and the report payload.
"""

from django.apps import AppConfig


class RecallsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "recalls"
    verbose_name = "Recalls"
