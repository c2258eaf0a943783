from decimal import Decimal
from typing import List, Optional

from storefront.schemas.base import ApiModel
from storefront.services.cart_service import CartView
from storefront.services.currency_service import format_amount


class AddItemIn(ApiModel):
    product_id: int
    quantity: int = 1


class UpdateItemIn(ApiModel):
    quantity: int


class CartLineOut(ApiModel):
    id: int
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    image_url: Optional[str] = None
    available: int


class CartOut(ApiModel):
    items: List[CartLineOut]
    item_count: int
    subtotal: Decimal
    total: Decimal
    base_currency: str
    currency: str
    display_total: str

    @classmethod
    def from_view(cls, view: CartView, base_currency: str) -> "CartOut":
        return cls(
            items=[
                CartLineOut(
                    id=line.item_id,
                    product_id=line.priced.product_id,
                    name=line.priced.name,
                    unit_price=line.priced.unit_price,
                    quantity=line.priced.quantity,
                    line_total=line.priced.line_total,
                    image_url=line.priced.image_url,
                    available=line.available,
                )
                for line in view.lines
            ],
            item_count=view.item_count,
            subtotal=view.subtotal,
            total=view.total,
            base_currency=base_currency,
            currency=view.currency.code,
            display_total=format_amount(view.display_total, view.currency),
        )
