from quoteflow.models import Permission, UserPermission
from quoteflow.permissions import (
    assign_role,
    check_permission,
    get_user_permissions,
    has_permission,
    normalize_permission,
    permission_cache_key,
    remove_role,
)
from tests.conftest import make_user


def test_normalize_permission():
    assert normalize_permission("orders:read") == "view_orders"
    assert normalize_permission("products:read_cost") == "view_cost_products"
    assert normalize_permission("edit_quotations") == "edit_quotations"


def test_role_grants(db, kv):
    accountant = make_user(db, "acct@example.com", "accountant", kv)
    salesperson = make_user(db, "sales@example.com", "salesperson", kv)

    assert has_permission(db, accountant.id, "reports:write")
    assert has_permission(db, accountant.id, "products:read_cost")
    assert not has_permission(db, salesperson.id, "products:read_cost")
    assert not has_permission(db, salesperson.id, "payments:write")
    assert "edit_quotations" in get_user_permissions(db, salesperson.id)


def test_check_permission_caches_database_answer(db, kv):
    user = make_user(db, "cache@example.com", "salesperson", kv)

    assert check_permission(kv, db, user.id, "orders:read") is True
    assert kv.get(permission_cache_key(user.id, "view_orders")) is True

    # a stale cached value is served without touching the database
    kv.set(permission_cache_key(user.id, "view_orders"), False)
    assert check_permission(kv, db, user.id, "orders:read") is False


def test_role_changes_invalidate_cached_permissions(db, kv):
    user = make_user(db, "promote@example.com", "salesperson", kv)
    assert check_permission(kv, db, user.id, "payments:write") is False

    assign_role(db, kv, user.id, "accountant")
    assert kv.get(permission_cache_key(user.id, "edit_payments")) is None
    assert check_permission(kv, db, user.id, "payments:write") is True

    remove_role(db, kv, user.id, "accountant")
    assert check_permission(kv, db, user.id, "payments:write") is False


def test_direct_grant(db, kv):
    user = make_user(db, "direct@example.com", "salesperson", kv)
    permission = db.query(Permission).filter(Permission.name == "view_cost_products").one()
    db.add(UserPermission(user_id=user.id, permission_id=permission.id))
    db.commit()
    assert has_permission(db, user.id, "products:read_cost")


def test_route_denies_missing_permission(client, db, kv):
    client.current["user"] = make_user(db, "nobody@example.com", kv=kv)
    response = client.get("/api/orders")
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"
