# production/apps.py

"""
PRODUCTION APP CONFIG

Production runs, their consumed inputs (incl. rework) and output batches.
"""

from django.apps import AppConfig


class ProductionConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "production"
    verbose_name = "Production"
