import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from storefront.db import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# fulfilment moves an order forward; cancellation only before it ships
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default=OrderStatus.PENDING.value)
    total_price = Column(Numeric(12, 2), nullable=False)  # base currency
    currency = Column(String(3), nullable=False, default="USD")
    payment_method = Column(String(64), nullable=False)
    shipping_address = Column(Text, nullable=False, default="")
    # immutable snapshot: [{product_id, name, price, quantity, image_url, line_total}]
    items = Column(JSON, nullable=False)
    # one order per payment; also the guard against duplicate finalization
    payment_intent_id = Column(String(128), unique=True, nullable=True, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
