# backend/urls.py
"""
PROJECT URLS

All API routes live under /api/

Modules:
- /api/inventory/     suppliers, deliveries, stock batches, dispatches
- /api/production/    production runs (inputs / outputs)
- /api/traceability/  backward / forward traces, mock recall exercises
- /api/recalls/       recall workflow, report payload, readiness

Operational maturity:
- Add /api/health/ endpoint (AllowAny) that checks DB connectivity.

Security hardening:
- Make Django admin path configurable via env var (ADMIN_PATH)
  to reduce bot scanning/noise and narrow attack surface.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.contrib import admin
from django.db import connections
from django.db.utils import DatabaseError
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.utils import extend_schema
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

logger = logging.getLogger(__name__)


# ------------------ API ROOT (PUBLIC) ------------------
@extend_schema(
    responses={
        200: {
            "type": "object",
            "properties": {
                "message": {"type": "string"},
                "auth": {"type": "object"},
                "docs": {"type": "object"},
                "modules": {"type": "object"},
            },
        }
    },
)
@api_view(["GET"])
@permission_classes([AllowAny])
def api_root(request):
    return Response(
        {
            "message": "Food Traceability API is running",
            "auth": {
                "jwt_create": "/api/auth/jwt/create/",
                "jwt_refresh": "/api/auth/jwt/refresh/",
            },
            "docs": {
                "swagger": "/api/docs/",
                "schema": "/api/schema/",
            },
            "modules": {
                "inventory": "/api/inventory/",
                "production": "/api/production/",
                "traceability": "/api/traceability/",
                "recalls": "/api/recalls/",
            },
        }
    )


# ------------------ HEALTH CHECK (PUBLIC) ------------------
@extend_schema(
    responses={
        200: {
            "type": "object",
            "properties": {
                "status": {"type": "string"},
                "db": {"type": "string"},
            },
        },
        503: {
            "type": "object",
            "properties": {"status": {"type": "string"}, "db": {"type": "string"}, "error": {"type": "string"}},
        },
    },
)
@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Liveness plus a round trip to the default database."""
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except DatabaseError as exc:
        logger.warning("Health check failed", extra={"error": str(exc)})
        return Response({"status": "degraded", "db": "down", "error": str(exc)}, status=503)
    return Response({"status": "ok", "db": "ok"})


# ------------------ ADMIN PATH (HARDENED) ------------------
# ADMIN_PATH keeps its trailing slash.
ADMIN_PATH = getattr(settings, "ADMIN_PATH", "admin/")
if not ADMIN_PATH.endswith("/"):
    ADMIN_PATH = f"{ADMIN_PATH}/"


# ------------------ API ROUTES (ALL UNDER /api/) ------------------
api_urlpatterns = [
    # Health check / root
    path("", api_root, name="api-root"),
    path("health/", health_check, name="health-check"),
    # OpenAPI / Swagger
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    # JWT (SimpleJWT)
    path("auth/jwt/create/", TokenObtainPairView.as_view(), name="jwt-create"),
    path("auth/jwt/refresh/", TokenRefreshView.as_view(), name="jwt-refresh"),
    # App modules
    path("inventory/", include("inventory.urls")),
    path("production/", include("production.urls")),
    path("traceability/", include("traceability.urls")),
    path("recalls/", include("recalls.urls")),
]

urlpatterns = [
    # Hardened admin path
    path(ADMIN_PATH, admin.site.urls),
    # Root convenience: visiting / takes you to Swagger docs
    path("", RedirectView.as_view(url="/api/docs/", permanent=False), name="root"),
    path("api/", include(api_urlpatterns)),
]
