"""Product service - catalogue with role-gated cost fields"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import KVCache
from ...models import Company, Product, User
from ...permissions import can_access_product_cost, check_permission
from .repository import ProductRepository
from .schemas import COST_FIELDS, ProductCreate, ProductResponse, ProductUpdate

logger = logging.getLogger(__name__)


class ProductService:
    """Service layer for product business logic"""

    def __init__(self, db: Session, kv: KVCache):
        self.db = db
        self.kv = kv
        self.repo = ProductRepository()

    def can_read_cost(self, user: User, company: Company) -> bool:
        return check_permission(
            self.kv, self.db, user.id, "products:read_cost", company.id
        ) or can_access_product_cost(self.db, user.id, company.id)

    def can_write_cost(self, user: User, company: Company) -> bool:
        return check_permission(
            self.kv, self.db, user.id, "products:write_cost", company.id
        ) or can_access_product_cost(self.db, user.id, company.id)

    def serialize(self, product: Product, include_cost: bool) -> dict:
        data = ProductResponse.model_validate(product).model_dump()
        data["name"] = {"zh": product.name_zh, "en": product.name_en}
        if not include_cost:
            for field in COST_FIELDS:
                data.pop(field, None)
        return data

    def get_products(self, company: Company, user: User, category: Optional[str] = None, q: Optional[str] = None) -> list[dict]:
        include_cost = self.can_read_cost(user, company)
        if q and q.strip():
            products = self.repo.search_products(self.db, company.id, q.strip())
        else:
            products = self.repo.get_products(self.db, company.id, category)
        return [self.serialize(p, include_cost) for p in products]

    def get_product(self, product_id: int, company: Company) -> Product:
        product = self.repo.get_product(self.db, product_id, company.id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        return product

    def _check_cost_write(self, payload: dict, user: User, company: Company) -> None:
        if any(payload.get(f) is not None for f in COST_FIELDS) and not self.can_write_cost(user, company):
            logger.warning(f"🚫 User {user.id} attempted to set product cost")
            raise HTTPException(status_code=403, detail="You do not have permission to edit product cost")

    def create_product(self, data: ProductCreate, company: Company, user: User) -> Product:
        payload = data.model_dump()
        self._check_cost_write(payload, user, company)
        return self.repo.create_product(self.db, company.id, user.id, **payload)

    def update_product(self, product_id: int, data: ProductUpdate, company: Company, user: User) -> Product:
        product = self.get_product(product_id, company)
        payload = data.model_dump(exclude_unset=True)
        self._check_cost_write(payload, user, company)
        return self.repo.update_product(self.db, product, **payload)

    def delete_product(self, product_id: int, company: Company) -> dict:
        product = self.get_product(product_id, company)
        self.repo.delete_product(self.db, product)
        return {"message": "Product deleted"}
