from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.models.wishlist_item import WishlistItem


class WishlistRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: int) -> List[WishlistItem]:
        return (
            self.db.query(WishlistItem)
            .filter(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.id)
            .all()
        )

    def get(self, user_id: int, item_id: int) -> Optional[WishlistItem]:
        return (
            self.db.query(WishlistItem)
            .filter(WishlistItem.id == item_id, WishlistItem.user_id == user_id)
            .first()
        )

    def get_by_product(self, user_id: int, product_id: int) -> Optional[WishlistItem]:
        return (
            self.db.query(WishlistItem)
            .filter(WishlistItem.user_id == user_id, WishlistItem.product_id == product_id)
            .first()
        )

    def add(self, user_id: int, product_id: int) -> WishlistItem:
        item = WishlistItem(user_id=user_id, product_id=product_id)
        self.db.add(item)
        self.db.flush()
        return item

    def remove(self, item: WishlistItem):
        self.db.delete(item)
        self.db.flush()
