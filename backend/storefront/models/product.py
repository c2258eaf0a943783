from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)

from storefront.db import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("inventory >= 0", name="ck_products_inventory_nonneg"),
    )

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String(256), nullable=False)
    slug = Column(String(256), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)  # base currency
    sale_price = Column(Numeric(12, 2), nullable=True)
    image_url = Column(String(512), nullable=True)
    inventory = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=True)
    review_count = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<Product id={self.id} name={self.name}>"
