from datetime import datetime
from decimal import Decimal
from typing import Optional

from storefront.models.product import Product
from storefront.schemas.base import ApiModel
from storefront.services.pricing_service import effective_price


class ProductOut(ApiModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    price: Decimal
    sale_price: Optional[Decimal] = None
    effective_price: Decimal
    image_url: Optional[str] = None
    inventory: int
    category_id: Optional[int] = None
    seller_id: Optional[int] = None
    rating: Optional[float] = None
    review_count: int = 0
    active: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_product(cls, p: Product) -> "ProductOut":
        return cls(
            id=p.id,
            name=p.name,
            slug=p.slug,
            description=p.description,
            price=p.price,
            sale_price=p.sale_price,
            effective_price=effective_price(p),
            image_url=p.image_url,
            inventory=p.inventory,
            category_id=p.category_id,
            seller_id=p.seller_id,
            rating=p.rating,
            review_count=p.review_count or 0,
            active=p.active,
            created_at=p.created_at,
        )


class CategoryOut(ApiModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
