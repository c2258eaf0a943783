from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from storefront.models.order import Order
from storefront.schemas.base import ApiModel


class OrderItemOut(ApiModel):
    product_id: int
    name: str
    price: Decimal
    quantity: int
    line_total: Decimal
    image_url: Optional[str] = None


class OrderOut(ApiModel):
    id: int
    order_number: str
    user_id: int
    status: str
    total_price: Decimal
    currency: str
    payment_method: str
    shipping_address: str
    items: List[OrderItemOut]
    payment_intent_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderOut":
        return cls(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status,
            total_price=order.total_price,
            currency=order.currency,
            payment_method=order.payment_method,
            shipping_address=order.shipping_address or "",
            items=[OrderItemOut(**it) for it in order.items or []],
            payment_intent_id=order.payment_intent_id,
            created_at=order.created_at,
        )


class OrderStatusIn(ApiModel):
    status: str
