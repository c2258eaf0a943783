from typing import List, Tuple

from sqlalchemy.orm import Session

from storefront.models.product import Product
from storefront.models.wishlist_item import WishlistItem
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.wishlist_repo import WishlistRepository
from storefront.services.errors import ProductNotFound, WishlistItemExists, WishlistItemNotFound
from storefront.utils.transactions import transaction


class WishlistService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = WishlistRepository(db)
        self.products = ProductRepository(db)

    def list(self, user_id: int) -> List[Tuple[WishlistItem, Product]]:
        items = self.repo.list_for_user(user_id)
        products = self.products.get_many([it.product_id for it in items])
        return [(it, products[it.product_id]) for it in items if it.product_id in products]

    def add(self, user_id: int, product_id: int) -> WishlistItem:
        if not self.products.get(product_id):
            raise ProductNotFound(product_id=product_id)
        if self.repo.get_by_product(user_id, product_id):
            raise WishlistItemExists(product_id=product_id)
        with transaction(self.db, "wishlist.add"):
            item = self.repo.add(user_id, product_id)
        return item

    def remove(self, user_id: int, item_id: int) -> None:
        item = self.repo.get(user_id, item_id)
        if not item:
            raise WishlistItemNotFound(item_id=item_id)
        with transaction(self.db, "wishlist.remove"):
            self.repo.remove(item)

    def toggle(self, user_id: int, product_id: int) -> bool:
        """Add if absent, remove if present. Returns whether the product is now wishlisted."""
        item = self.repo.get_by_product(user_id, product_id)
        if item:
            with transaction(self.db, "wishlist.toggle"):
                self.repo.remove(item)
            return False
        self.add(user_id, product_id)
        return True
