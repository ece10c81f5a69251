# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS (STAFF JOB ROLES)
# =========================================================
# They describe what the staff member does on site.
# A user's role is the name of a Django auth Group they belong to;
# superusers are always admin.
ROLE_ADMIN = "admin"
ROLE_COMPLIANCE = "compliance"      # technical / food safety manager
ROLE_PRODUCTION = "production"      # production supervisor
ROLE_DISPATCH = "dispatch"          # goods-in / goods-out
ROLE_VIEWER = "viewer"              # auditors, read-only

STAFF_ROLES = {
    ROLE_ADMIN,
    ROLE_COMPLIANCE,
    ROLE_PRODUCTION,
    ROLE_DISPATCH,
    ROLE_VIEWER,
}

# Highest privilege first: a user in several groups gets the first match.
ROLE_PRECEDENCE = [
    ROLE_ADMIN,
    ROLE_COMPLIANCE,
    ROLE_PRODUCTION,
    ROLE_DISPATCH,
    ROLE_VIEWER,
]


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views should protect capabilities, not raw roles.
CAP_TRACE_VIEW = "trace.view"
CAP_RECALL_MANAGE = "recall.manage"

CAP_INVENTORY_VIEW = "inventory.view"
CAP_INVENTORY_EDIT = "inventory.edit"
CAP_INVENTORY_ADJUST = "inventory.adjust"     # quarantine / release / write-off

CAP_PRODUCTION_EDIT = "production.edit"

CAP_REPORTS_VIEW = "reports.view"

ALL_CAPABILITIES = {
    CAP_TRACE_VIEW,
    CAP_RECALL_MANAGE,
    CAP_INVENTORY_VIEW,
    CAP_INVENTORY_EDIT,
    CAP_INVENTORY_ADJUST,
    CAP_PRODUCTION_EDIT,
    CAP_REPORTS_VIEW,
}


# =========================================================
# ROLE → CAPABILITY MAP (DEFAULT)
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_COMPLIANCE: {
        CAP_TRACE_VIEW,
        CAP_RECALL_MANAGE,
        CAP_INVENTORY_VIEW,
        CAP_INVENTORY_ADJUST,
        CAP_REPORTS_VIEW,
    },
    ROLE_PRODUCTION: {
        CAP_TRACE_VIEW,
        CAP_INVENTORY_VIEW,
        CAP_PRODUCTION_EDIT,
    },
    ROLE_DISPATCH: {
        CAP_INVENTORY_VIEW,
        CAP_INVENTORY_EDIT,
    },
    ROLE_VIEWER: {
        CAP_TRACE_VIEW,
        CAP_INVENTORY_VIEW,
        CAP_REPORTS_VIEW,
    },
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    if not user or not getattr(user, "is_authenticated", False):
        return None

    if getattr(user, "is_superuser", False):
        return ROLE_ADMIN

    group_names = set(user.groups.values_list("name", flat=True))
    for role in ROLE_PRECEDENCE:
        if role in group_names:
            return role
    return None


def effective_capabilities_for(user) -> set[str]:
    role = get_user_role(user)
    return set(ROLE_CAPABILITIES.get(role, set()))


def user_label(user) -> str:
    """Actor label written to audit rows (performed_by / started_by)."""
    if not user or not getattr(user, "is_authenticated", False):
        return ""
    return user.get_username()


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        view.required_capability = CAP_RECALL_MANAGE
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_capability", None)
        if not required:
            # If not set, deny-by-default to avoid accidental open endpoints
            return False

        return required in effective_capabilities_for(user)


class HasAnyCapability(BasePermission):
    """
    Require ANY capability from a list.

    Usage:
        view.required_any_capabilities = {CAP_TRACE_VIEW, CAP_RECALL_MANAGE}
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_any_capabilities", None)
        if not required:
            return False

        caps = effective_capabilities_for(user)
        return any(cap in caps for cap in set(required))
