import pytest

from leadhub.core import permissions
from leadhub.core.errors import OperationNotAllowed, PermissionDenied, UserNotFound
from leadhub.models import User
from leadhub.services import user_service


class _U:
    def __init__(self, role, perms=None):
        self.role = role
        self.permissions = perms


def test_admin_holds_everything():
    admin = _U("admin")
    assert all(permissions.has_capability(admin, c) for c in permissions.ALL_CAPABILITIES)


def test_subadmin_holds_granted_subset_plus_free_access():
    sub = _U("subadmin", ["leads_management", "coin_management", "bogus"])
    assert permissions.capabilities_for(sub) == frozenset({"leads_management", "lead.free_access"})
    assert permissions.is_staff(sub)


def test_user_and_anonymous_hold_nothing():
    assert permissions.capabilities_for(_U("user", ["user_management"])) == frozenset()
    assert permissions.capabilities_for(None) == frozenset()
    assert not permissions.is_staff(_U("user"))


def test_normalize_drops_admin_only():
    assert permissions.normalize_permissions(["settings_management", "support_management"]) == ["support_management"]
    assert permissions.normalize_permissions(None) == []


def test_delete_rules(db, make_user):
    admin = make_user(role="admin")
    sub = make_user(role="subadmin", permissions=["user_management"])
    other_admin = make_user(role="admin")
    victim = make_user(role="subadmin")

    with pytest.raises(OperationNotAllowed):
        user_service.delete_user(db, other_admin.id, admin)
    with pytest.raises(OperationNotAllowed):
        user_service.delete_user(db, sub.id, sub)
    with pytest.raises(PermissionDenied):
        user_service.delete_user(db, victim.id, sub)

    user_service.delete_user(db, victim.id, admin)
    assert db.query(User).filter(User.id == victim.id).first() is None


def test_update_permissions_only_for_subadmins(db, make_user):
    user = make_user()
    sub = make_user(role="subadmin")
    with pytest.raises(UserNotFound):
        user_service.update_permissions(db, user.id, ["leads_management"])
    assert user_service.update_permissions(db, sub.id, ["support_management"]).permissions == ["support_management"]


# =========================================================
# API
# =========================================================

def test_admin_routes_require_login(client):
    assert client.get("/api/admin/users").status_code == 401


def test_regular_user_forbidden(client, login, make_user):
    login(make_user())
    for path in ("/api/admin/users", "/api/admin/leadcoins/stats", "/api/admin/subadmins", "/api/admin/logs"):
        assert client.get(path).status_code == 403, path


def test_subadmin_sees_only_granted_sections(client, login, make_user):
    login(make_user(role="subadmin", permissions=["user_management"]))
    assert client.get("/api/admin/users").status_code == 200
    assert client.get("/api/admin/subscriptions/plans").status_code == 403
    assert client.get("/api/admin/leadcoins/settings").status_code == 403


def test_admin_creates_subadmin(client, login, make_user):
    login(make_user(role="admin"))

    res = client.post("/api/admin/subadmins", json={
        "email": "helper@example.com",
        "name": "Helper",
        "password": "Str0ng-pass",
        "permissions": ["support_management"],
    })
    assert res.status_code == 200
    created = res.json()
    assert created["role"] == "subadmin"
    assert created["permissions"] == ["support_management"]

    res = client.put(f"/api/admin/subadmins/{created['id']}/permissions", json={"permissions": ["user_management"]})
    assert res.json()["permissions"] == ["user_management"]

    res = client.post("/api/admin/subadmins", json={
        "email": "helper@example.com", "name": "Again", "password": "Str0ng-pass",
    })
    assert res.status_code == 409


def test_subadmin_cannot_be_granted_admin_capability(client, login, make_user):
    login(make_user(role="admin"))
    res = client.post("/api/admin/subadmins", json={
        "email": "x@example.com", "name": "X", "password": "Str0ng-pass", "permissions": ["coin_management"],
    })
    assert res.status_code == 422


def test_coin_settings_update(client, login, make_user):
    login(make_user(role="admin"))
    res = client.put("/api/admin/leadcoins/settings", json={"contact_info_cost": 7, "detailed_info_cost": 12, "full_access_cost": 20})
    assert res.status_code == 200
    assert client.get("/api/admin/leadcoins/settings").json()["contact_info_cost"] == 7
