"""Role capabilities.

Routers and services ask ``has_capability(user, ...)`` instead of comparing
role strings. Admins hold every capability; subadmins hold the free lead
access capability plus whatever subset of ``SUBADMIN_PERMISSIONS`` an admin
granted them; regular users hold none.
"""
from typing import Iterable

USER_MANAGEMENT = "user_management"
LEADS_MANAGEMENT = "leads_management"
SUPPORT_MANAGEMENT = "support_management"
SUBSCRIPTION_MANAGEMENT = "subscription_management"

COIN_MANAGEMENT = "coin_management"
COUPON_MANAGEMENT = "coupon_management"
SUBADMIN_MANAGEMENT = "subadmin_management"
SETTINGS_MANAGEMENT = "settings_management"

LEAD_FREE_ACCESS = "lead.free_access"

SUBADMIN_PERMISSIONS = frozenset({
    USER_MANAGEMENT,
    LEADS_MANAGEMENT,
    SUPPORT_MANAGEMENT,
    SUBSCRIPTION_MANAGEMENT,
})

ADMIN_ONLY = frozenset({
    COIN_MANAGEMENT,
    COUPON_MANAGEMENT,
    SUBADMIN_MANAGEMENT,
    SETTINGS_MANAGEMENT,
})

ALL_CAPABILITIES = SUBADMIN_PERMISSIONS | ADMIN_ONLY | {LEAD_FREE_ACCESS}


def normalize_permissions(permissions: Iterable[str] | None) -> list[str]:
    """Drop unknown or admin-only entries from a subadmin permission list"""
    if not permissions:
        return []
    return sorted({p for p in permissions if p in SUBADMIN_PERMISSIONS})


def capabilities_for(user) -> frozenset[str]:
    if user is None:
        return frozenset()
    if user.role == "admin":
        return ALL_CAPABILITIES
    if user.role == "subadmin":
        return frozenset(normalize_permissions(user.permissions)) | {LEAD_FREE_ACCESS}
    return frozenset()


def has_capability(user, capability: str) -> bool:
    return capability in capabilities_for(user)


def is_staff(user) -> bool:
    """Admins and subadmins"""
    return has_capability(user, LEAD_FREE_ACCESS)
