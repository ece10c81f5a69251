# traceability/conf.py

"""
Domain settings resolver.

settings.TRACEABILITY (dict) overrides the defaults below; anything missing
falls back, so tests can override a single key with override_settings.
"""

from django.conf import settings

DEFAULTS = {
    "TRACE_MAX_DEPTH": 50,
    "REGULATOR_NOTIFICATION_DAYS": 3,
    "MOCK_RECALL_TARGET_HOURS": 4,
    "RECALL_REQUIRE_RESPONSES_TO_RESOLVE": True,
}


def traceability_setting(name: str):
    cfg = getattr(settings, "TRACEABILITY", {}) or {}
    if not isinstance(cfg, dict):
        cfg = {}
    if name in cfg:
        return cfg[name]
    return DEFAULTS[name]
