"""RBAC router - roles and permission lookups"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_company_id, get_current_user
from ...cache import KVCache, get_kv
from ...database import get_db
from ...models import Role, User
from ...permissions import (
    assign_role,
    authorize_role_change,
    can_access_product_cost,
    get_user_highest_role,
    get_user_permissions,
    get_user_roles,
    remove_role,
    require_permission,
)
from ...responses import ok

router = APIRouter(prefix="/api/rbac", tags=["RBAC"])


class RoleAssignment(BaseModel):
    role_name: str


def _role(role: Role) -> dict:
    return {"id": role.id, "name": role.name, "display_name": role.display_name, "level": role.level}


@router.get("/roles")
async def list_roles(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    roles = db.query(Role).order_by(Role.level.asc()).all()
    return ok([_role(r) for r in roles])


@router.get("/me")
async def my_access(
    user: User = Depends(get_current_user),
    company_id: Optional[int] = Depends(get_current_company_id),
    db: Session = Depends(get_db),
):
    """Roles and effective permissions of the current user in the active company"""
    highest = get_user_highest_role(db, user.id, company_id)
    return ok(
        {
            "user_id": user.id,
            "company_id": company_id,
            "roles": [_role(r) for r in get_user_roles(db, user.id, company_id)],
            "highest_role": _role(highest) if highest else None,
            "permissions": get_user_permissions(db, user.id, company_id),
            "can_access_product_cost": can_access_product_cost(db, user.id, company_id),
        }
    )


@router.get("/users/{user_id}/roles")
async def user_roles(
    user_id: int,
    user: User = Depends(require_permission("users:read")),
    company_id: Optional[int] = Depends(get_current_company_id),
    db: Session = Depends(get_db),
):
    return ok([_role(r) for r in get_user_roles(db, user_id, company_id)])


@router.get("/users/{user_id}/permissions")
async def user_permissions(
    user_id: int,
    user: User = Depends(require_permission("users:read")),
    company_id: Optional[int] = Depends(get_current_company_id),
    db: Session = Depends(get_db),
):
    return ok(get_user_permissions(db, user_id, company_id))


@router.post("/users/{user_id}/roles")
async def add_user_role(
    user_id: int,
    body: RoleAssignment,
    user: User = Depends(require_permission("users:assign_roles")),
    company_id: Optional[int] = Depends(get_current_company_id),
    db: Session = Depends(get_db),
    kv: KVCache = Depends(get_kv),
):
    scope = authorize_role_change(db, user.id, user_id, body.role_name, company_id)
    assign_role(db, kv, user_id, body.role_name, assigned_by=user.id, company_id=scope)
    return ok([_role(r) for r in get_user_roles(db, user_id, company_id)])


@router.delete("/users/{user_id}/roles/{role_name}")
async def delete_user_role(
    user_id: int,
    role_name: str,
    user: User = Depends(require_permission("users:assign_roles")),
    company_id: Optional[int] = Depends(get_current_company_id),
    db: Session = Depends(get_db),
    kv: KVCache = Depends(get_kv),
):
    scope = authorize_role_change(db, user.id, user_id, role_name, company_id)
    removed = remove_role(db, kv, user_id, role_name, company_id=scope)
    return ok({"removed": removed})


__all__ = ["router"]
