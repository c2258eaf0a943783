from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storefront.models.category import Category
from storefront.models.product import Product


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Optional[Product]:
        return (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.active == True)  # noqa: E712
            .first()
        )

    def get_many(self, product_ids: Iterable[int], fresh: bool = False) -> Dict[int, Product]:
        """
        Load products by id into a dict. ``fresh`` bypasses the identity map so
        checkout never prices or stock-checks against objects loaded earlier in
        the same session.
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids))
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        return {p.id: p for p in self.db.execute(stmt).scalars().all()}

    def current_inventory(self, product_id: int) -> int:
        value = self.db.execute(
            select(Product.inventory).where(Product.id == product_id)
        ).scalar_one_or_none()
        return int(value or 0)

    def list(
        self,
        q: Optional[str] = None,
        category: Optional[str] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Product], int]:
        query = self.db.query(Product).filter(Product.active == True)  # noqa: E712
        if q:
            like = f"%{q}%"
            query = query.filter(
                (Product.name.ilike(like)) | (Product.description.ilike(like))
            )
        if category:
            query = query.join(Category, Category.id == Product.category_id).filter(
                Category.slug == category
            )
        total = query.with_entities(func.count(Product.id)).scalar() or 0
        items = query.order_by(Product.name).offset((page - 1) * size).limit(size).all()
        return items, total

    def list_categories(self) -> List[Category]:
        return self.db.query(Category).order_by(Category.name).all()

    def create_or_update(
        self,
        slug: str,
        name: str,
        price: Decimal,
        inventory: int = 0,
        sale_price: Optional[Decimal] = None,
        description: str = None,
        image_url: str = None,
        category_id: Optional[int] = None,
    ) -> Product:
        p = self.db.query(Product).filter(Product.slug == slug).first()
        if p:
            p.name = name
            p.price = price
            p.sale_price = sale_price
            p.inventory = inventory
            p.description = description
            p.image_url = image_url
            p.category_id = category_id
        else:
            p = Product(
                slug=slug,
                name=name,
                price=price,
                sale_price=sale_price,
                inventory=inventory,
                description=description,
                image_url=image_url,
                category_id=category_id,
            )
            self.db.add(p)
        self.db.flush()
        return p

    def get_or_create_category(self, slug: str, name: str) -> Category:
        c = self.db.query(Category).filter(Category.slug == slug).first()
        if not c:
            c = Category(slug=slug, name=name)
            self.db.add(c)
            self.db.flush()
        return c
