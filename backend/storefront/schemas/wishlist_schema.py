from datetime import datetime
from typing import Optional

from storefront.schemas.base import ApiModel
from storefront.schemas.product_schema import ProductOut


class WishlistIn(ApiModel):
    product_id: int


class WishlistItemOut(ApiModel):
    id: int
    product_id: int
    created_at: Optional[datetime] = None
    product: ProductOut
