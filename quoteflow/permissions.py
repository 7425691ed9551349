"""
Role-based access control

Permissions are named `<verb>_<resource>` (view_products, edit_quotations, ...).
Routes declare them as "resource:action" and checks go through a cache-aside
lookup: KV first, then the database.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .auth import get_current_company_id, get_current_user
from .cache import KVCache, get_kv
from .database import get_db
from .models import CompanyMember, Permission, Role, RolePermission, User, UserPermission, UserRole

logger = logging.getLogger(__name__)

PERMISSION_CACHE_TTL = 3600

ACTION_VERBS = {
    "read": "view",
    "write": "edit",
    "delete": "delete",
    "read_cost": "view_cost",
    "write_cost": "edit_cost",
    "assign_roles": "assign_roles",
}

# name -> (level, display name). Lower level is more privileged.
ROLES = {
    "super_admin": (1, "Super Admin"),
    "company_owner": (2, "Company Owner"),
    "sales_manager": (3, "Sales Manager"),
    "salesperson": (4, "Salesperson"),
    "accountant": (5, "Accountant"),
}

COST_ROLES = {"super_admin", "company_owner", "accountant"}

# company owners may hand out sales_manager and below
OWNER_ASSIGNABLE_LEVEL = 3

RESOURCE_ACTIONS = {
    "products": ("read", "write", "delete", "read_cost", "write_cost"),
    "customers": ("read", "write", "delete"),
    "quotations": ("read", "write", "delete"),
    "orders": ("read", "write", "delete"),
    "shipments": ("read", "write", "delete"),
    "contracts": ("read", "write", "delete"),
    "payments": ("read", "write", "delete"),
    "reports": ("read", "write"),
    "users": ("read", "write", "delete", "assign_roles"),
    "companies": ("read", "write", "delete"),
    "subscriptions": ("read", "write"),
    "exchange_rates": ("read", "write"),
    "observability": ("read", "write"),
}

SALES_RESOURCES = ("products", "customers", "quotations", "orders", "shipments", "contracts")


def permission_name(resource: str, action: str) -> str:
    verb = ACTION_VERBS.get(action)
    if verb is None:
        raise ValueError(f"Unknown permission action: {action}")
    return f"{verb}_{resource}"


def normalize_permission(permission: str) -> str:
    """Accept either "resource:action" or an already formed permission name"""
    if ":" in permission:
        resource, action = permission.split(":", 1)
        return permission_name(resource, action)
    return permission


def _all_permissions() -> set[str]:
    return {
        permission_name(resource, action)
        for resource, actions in RESOURCE_ACTIONS.items()
        for action in actions
    }


def _grants(resources, actions) -> set[str]:
    return {permission_name(r, a) for r in resources for a in actions}


def default_role_permissions() -> dict[str, set[str]]:
    everything = _all_permissions()
    return {
        "super_admin": everything,
        "company_owner": everything - _grants(["observability"], ["read", "write"]),
        "sales_manager": _grants(SALES_RESOURCES, ["read", "write", "delete"])
        | _grants(["payments", "reports", "users", "companies", "exchange_rates", "subscriptions"], ["read"]),
        "salesperson": _grants(["customers", "quotations", "orders", "shipments"], ["read", "write"])
        | _grants(["products", "contracts", "companies", "exchange_rates"], ["read"]),
        "accountant": _grants(SALES_RESOURCES + ("companies", "subscriptions"), ["read"])
        | _grants(["products"], ["read_cost", "write_cost"])
        | _grants(["payments", "reports", "exchange_rates"], ["read", "write"]),
    }


def seed_rbac(db: Session) -> None:
    """Create default roles, permissions and role grants when missing"""
    roles = {r.name: r for r in db.query(Role).all()}
    for name, (level, display_name) in ROLES.items():
        if name not in roles:
            roles[name] = Role(name=name, level=level, display_name=display_name)
            db.add(roles[name])

    permissions = {p.name: p for p in db.query(Permission).all()}
    for resource, actions in RESOURCE_ACTIONS.items():
        for action in actions:
            name = permission_name(resource, action)
            if name not in permissions:
                permissions[name] = Permission(name=name, resource=resource, action=action)
                db.add(permissions[name])
    db.flush()

    existing = {(rp.role_id, rp.permission_id) for rp in db.query(RolePermission).all()}
    for role_name, granted in default_role_permissions().items():
        role = roles[role_name]
        for perm_name in granted:
            permission = permissions[perm_name]
            if (role.id, permission.id) not in existing:
                db.add(RolePermission(role_id=role.id, permission_id=permission.id))
    db.commit()
    logger.info("✅ RBAC roles and permissions seeded")


# ============================================================================
# DATABASE LOOKUPS
# ============================================================================
#
# A UserRole with company_id NULL applies everywhere; one with a company_id
# applies only while that company is the active tenant. Without a tenant only
# platform-wide roles count.


def _role_scope(query, company_id: Optional[int]):
    if company_id is None:
        return query.filter(UserRole.company_id.is_(None))
    return query.filter(or_(UserRole.company_id.is_(None), UserRole.company_id == company_id))


def has_permission(db: Session, user_id: int, permission: str, company_id: Optional[int] = None) -> bool:
    """True when a role of the user in scope, or a direct grant, carries the permission"""
    name = normalize_permission(permission)

    via_role = _role_scope(
        db.query(RolePermission.id)
        .join(Permission, Permission.id == RolePermission.permission_id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id, Permission.name == name),
        company_id,
    ).first()
    if via_role:
        return True

    direct = (
        db.query(UserPermission.id)
        .join(Permission, Permission.id == UserPermission.permission_id)
        .filter(UserPermission.user_id == user_id, Permission.name == name)
        .first()
    )
    return direct is not None


def get_user_roles(db: Session, user_id: int, company_id: Optional[int] = None) -> list[Role]:
    roles = _role_scope(
        db.query(Role).join(UserRole, UserRole.role_id == Role.id).filter(UserRole.user_id == user_id),
        company_id,
    ).order_by(Role.level.asc()).all()
    # the same role may be held globally and in the company
    return list({role.id: role for role in roles}.values())


def get_user_highest_role(db: Session, user_id: int, company_id: Optional[int] = None) -> Optional[Role]:
    roles = get_user_roles(db, user_id, company_id)
    return roles[0] if roles else None


def get_user_permissions(db: Session, user_id: int, company_id: Optional[int] = None) -> list[str]:
    via_roles = _role_scope(
        db.query(Permission.name)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id),
        company_id,
    ).all()
    direct = (
        db.query(Permission.name)
        .join(UserPermission, UserPermission.permission_id == Permission.id)
        .filter(UserPermission.user_id == user_id)
        .all()
    )
    return sorted({row[0] for row in via_roles} | {row[0] for row in direct})


def can_access_product_cost(db: Session, user_id: int, company_id: Optional[int] = None) -> bool:
    return any(role.name in COST_ROLES for role in get_user_roles(db, user_id, company_id))


def is_super_admin(db: Session, user_id: int) -> bool:
    return any(role.name == "super_admin" for role in get_user_roles(db, user_id))


# ============================================================================
# CACHE-ASIDE CHECK
# ============================================================================


def permission_cache_key(user_id: int, permission: str, company_id: Optional[int] = None) -> str:
    return f"permission:{user_id}:{company_id or 'global'}:{permission}"


def check_permission(
    kv: KVCache, db: Session, user_id: int, permission: str, company_id: Optional[int] = None
) -> bool:
    """Permission check through the KV cache, falling back to the database"""
    name = normalize_permission(permission)
    key = permission_cache_key(user_id, name, company_id)

    cached = kv.get(key)
    if cached is not None:
        return bool(cached)

    allowed = has_permission(db, user_id, name, company_id)
    kv.set(key, allowed, PERMISSION_CACHE_TTL)
    return allowed


def invalidate_user_permissions(kv: KVCache, user_id: int) -> int:
    keys = kv.list(f"permission:{user_id}:")
    return kv.delete_many(keys)


def require_permission(permission: str):
    """
    Dependency factory that enforces a permission on a route.

    The check runs against the roles the user holds in the active company.

    Example:
        @router.get("", dependencies=[Depends(require_permission("orders:read"))])
    """
    name = normalize_permission(permission)

    async def dependency(
        user: User = Depends(get_current_user),
        company_id: Optional[int] = Depends(get_current_company_id),
        db: Session = Depends(get_db),
        kv: KVCache = Depends(get_kv),
    ) -> User:
        if not check_permission(kv, db, user.id, name, company_id):
            logger.warning(f"🚫 User {user.id} lacks permission {name} in company {company_id}")
            raise HTTPException(
                status_code=403,
                detail={"message": f"Permission denied: {name}", "code": "FORBIDDEN"},
            )
        return user

    return dependency


# ============================================================================
# ROLE ASSIGNMENT
# ============================================================================


def get_role_by_name(db: Session, role_name: str) -> Role:
    role = db.query(Role).filter(Role.name == role_name).first()
    if not role:
        raise HTTPException(status_code=404, detail=f"Role not found: {role_name}")
    return role


def _exact_scope(query, company_id: Optional[int]):
    if company_id is None:
        return query.filter(UserRole.company_id.is_(None))
    return query.filter(UserRole.company_id == company_id)


def assign_role(
    db: Session,
    kv: KVCache,
    user_id: int,
    role_name: str,
    assigned_by: Optional[int] = None,
    company_id: Optional[int] = None,
) -> UserRole:
    """Assign a role to a user, platform-wide or within one company. Repeats are a no-op."""
    role = get_role_by_name(db, role_name)
    existing = _exact_scope(
        db.query(UserRole).filter(UserRole.user_id == user_id, UserRole.role_id == role.id), company_id
    ).first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id, company_id=company_id, assigned_by=assigned_by)
    db.add(user_role)
    db.commit()
    db.refresh(user_role)
    invalidate_user_permissions(kv, user_id)
    logger.info(f"✅ Assigned role {role_name} to user {user_id} (company {company_id})")
    return user_role


def remove_role(
    db: Session, kv: KVCache, user_id: int, role_name: str, company_id: Optional[int] = None
) -> bool:
    role = get_role_by_name(db, role_name)
    deleted = _exact_scope(
        db.query(UserRole).filter(UserRole.user_id == user_id, UserRole.role_id == role.id), company_id
    ).delete(synchronize_session=False)
    db.commit()
    invalidate_user_permissions(kv, user_id)
    if deleted:
        logger.info(f"🗑️ Removed role {role_name} from user {user_id} (company {company_id})")
    return bool(deleted)


def remove_company_roles(db: Session, kv: KVCache, user_id: int, company_id: int) -> int:
    deleted = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.company_id == company_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    invalidate_user_permissions(kv, user_id)
    return deleted


def can_assign_role(db: Session, actor_id: int, role_name: str, company_id: Optional[int]) -> bool:
    """
    Super admins may grant any role. Company owners may grant roles below
    their own level, and only inside the active company.
    """
    role = get_role_by_name(db, role_name)
    if is_super_admin(db, actor_id):
        return True
    if company_id is None:
        return False
    actor_role = get_user_highest_role(db, actor_id, company_id)
    if actor_role is None or actor_role.level > ROLES["company_owner"][0]:
        return False
    return role.level >= OWNER_ASSIGNABLE_LEVEL


def authorize_role_change(
    db: Session, actor_id: int, target_user_id: int, role_name: str, company_id: Optional[int]
) -> Optional[int]:
    """
    Raise 403 unless the actor may grant or revoke role_name for the target.

    Returns the scope the change applies to: None (platform-wide) for super
    admins, otherwise the active company.
    """
    if not can_assign_role(db, actor_id, role_name, company_id):
        raise HTTPException(
            status_code=403,
            detail={"message": f"You cannot assign the role {role_name}", "code": "ROLE_ASSIGNMENT_FORBIDDEN"},
        )
    if is_super_admin(db, actor_id):
        return None

    member = (
        db.query(CompanyMember)
        .filter(
            CompanyMember.company_id == company_id,
            CompanyMember.user_id == target_user_id,
            CompanyMember.is_active.is_(True),
        )
        .first()
    )
    if not member:
        raise HTTPException(
            status_code=403,
            detail={"message": "User is not a member of your company", "code": "NOT_COMPANY_MEMBER"},
        )
    return company_id
