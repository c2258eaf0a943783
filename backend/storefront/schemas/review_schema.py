from datetime import datetime
from typing import Optional

from storefront.schemas.base import ApiModel


class ReviewIn(ApiModel):
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None


class ReviewOut(ApiModel):
    id: int
    product_id: int
    user_id: int
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    verified_purchase: bool
    helpful_count: int
    created_at: Optional[datetime] = None
