"""Product repository - Database operations for products"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Product


class ProductRepository:
    """Repository for product database operations"""

    @staticmethod
    def get_products(db: Session, company_id: int, category: Optional[str] = None) -> list[Product]:
        query = db.query(Product).filter(Product.company_id == company_id)
        if category:
            query = query.filter(Product.category == category)
        return query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    @staticmethod
    def get_product(db: Session, product_id: int, company_id: int) -> Optional[Product]:
        return (
            db.query(Product)
            .filter(Product.id == product_id, Product.company_id == company_id)
            .first()
        )

    @staticmethod
    def search_products(db: Session, company_id: int, query: str, limit: int = 20) -> list[Product]:
        pattern = f"%{query}%"
        return (
            db.query(Product)
            .filter(
                Product.company_id == company_id,
                or_(Product.name_zh.ilike(pattern), Product.name_en.ilike(pattern), Product.sku.ilike(pattern)),
            )
            .order_by(Product.name_zh.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def create_product(db: Session, company_id: int, user_id: int, **data) -> Product:
        product = Product(company_id=company_id, user_id=user_id, **data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def update_product(db: Session, product: Product, **updates) -> Product:
        for key, value in updates.items():
            if hasattr(product, key):
                setattr(product, key, value)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def delete_product(db: Session, product: Product) -> None:
        db.delete(product)
        db.commit()
