"""Product router - FastAPI endpoints for product operations"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...cache import KVCache, get_kv
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from .schemas import ProductCreate, ProductUpdate
from .service import ProductService

router = APIRouter(prefix="/api/products", tags=["Products"])


def get_product_service(db: Session = Depends(get_db), kv: KVCache = Depends(get_kv)) -> ProductService:
    """Dependency injection for ProductService"""
    return ProductService(db, kv)


@router.get("")
async def list_products(
    category: Optional[str] = None,
    q: Optional[str] = None,
    user: User = Depends(require_permission("products:read")),
    company: Company = Depends(get_current_company),
    service: ProductService = Depends(get_product_service),
):
    return ok(service.get_products(company, user, category, q))


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    user: User = Depends(require_permission("products:read")),
    company: Company = Depends(get_current_company),
    service: ProductService = Depends(get_product_service),
):
    product = service.get_product(product_id, company)
    return ok(service.serialize(product, service.can_read_cost(user, company)))


@router.post("", status_code=201)
async def create_product(
    data: ProductCreate,
    user: User = Depends(require_permission("products:write")),
    company: Company = Depends(get_current_company),
    service: ProductService = Depends(get_product_service),
):
    product = service.create_product(data, company, user)
    return ok(service.serialize(product, service.can_read_cost(user, company)))


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    data: ProductUpdate,
    user: User = Depends(require_permission("products:write")),
    company: Company = Depends(get_current_company),
    service: ProductService = Depends(get_product_service),
):
    product = service.update_product(product_id, data, company, user)
    return ok(service.serialize(product, service.can_read_cost(user, company)))


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    user: User = Depends(require_permission("products:delete")),
    company: Company = Depends(get_current_company),
    service: ProductService = Depends(get_product_service),
):
    return ok(service.delete_product(product_id, company))


__all__ = ["router"]
