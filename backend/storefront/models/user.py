from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from storefront.db import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    role = Column(String(32), nullable=False, default="customer")  # customer, seller, admin
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
