from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from storefront.models.cart_item import CartItem


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: int, fresh: bool = False) -> List[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.id)
        )
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        return list(self.db.execute(stmt).scalars().all())

    def get_item(self, user_id: int, item_id: int) -> Optional[CartItem]:
        return (
            self.db.query(CartItem)
            .filter(CartItem.id == item_id, CartItem.user_id == user_id)
            .first()
        )

    def get_by_product(self, user_id: int, product_id: int) -> Optional[CartItem]:
        return (
            self.db.query(CartItem)
            .filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
            .first()
        )

    def add_or_increment(self, user_id: int, product_id: int, qty: int) -> CartItem:
        item = self.get_by_product(user_id, product_id)
        if item:
            item.quantity = item.quantity + qty
        else:
            item = CartItem(user_id=user_id, product_id=product_id, quantity=qty)
            self.db.add(item)
        self.db.flush()
        return item

    def set_quantity(self, item: CartItem, qty: int) -> CartItem:
        item.quantity = qty
        self.db.flush()
        return item

    def remove_item(self, item: CartItem):
        self.db.delete(item)
        self.db.flush()

    def clear(self, user_id: int) -> int:
        res = self.db.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount or 0
