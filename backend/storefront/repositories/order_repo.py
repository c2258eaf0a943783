from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.models.order import Order


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def get(self, order_id: int) -> Optional[Order]:
        return self.db.get(Order, order_id)

    def get_by_intent(self, intent_id: str) -> Optional[Order]:
        return self.db.execute(
            select(Order).where(Order.payment_intent_id == intent_id)
        ).scalar_one_or_none()

    def list_for_user(self, user_id: int) -> List[Order]:
        return (
            self.db.query(Order)
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def list_all(self, status: Optional[str] = None, limit: int = 100) -> List[Order]:
        query = self.db.query(Order)
        if status:
            query = query.filter(Order.status == status)
        return query.order_by(Order.id.desc()).limit(limit).all()

    def user_bought_product(self, user_id: int, product_id: int) -> bool:
        # items is a JSON snapshot, so scan in Python rather than in SQL
        for order in self.list_for_user(user_id):
            if order.status == "cancelled":
                continue
            if any(int(it.get("product_id", 0)) == product_id for it in order.items or []):
                return True
        return False
