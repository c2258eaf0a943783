from typing import Iterable, Mapping

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.models.product import Product
from storefront.repositories.product_repo import ProductRepository
from storefront.services.errors import (
    InsufficientInventory,
    InvalidQuantity,
    InventoryChanged,
    ProductNotFound,
)
from storefront.utils.logging import get_logger

log = get_logger(__name__)


class InventoryService:
    """
    Stock checks for the cart and checkout.

    Only ``decrement`` writes; it is called by the order finalizer inside the
    same transaction that creates the order.
    """

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)

    def available_quantity(self, product_id: int) -> int:
        product = self.products.get(product_id)
        if not product:
            raise ProductNotFound(product_id=product_id)
        return max(0, int(product.inventory))

    def reserve(self, product_id: int, quantity: int) -> int:
        """
        Check that `quantity` (the cumulative amount the cart would hold) is in
        stock. Returns the available quantity; nothing is held or written.
        """
        if quantity < 1:
            raise InvalidQuantity(product_id=product_id, quantity=quantity)
        available = self.available_quantity(product_id)
        if quantity > available:
            raise InsufficientInventory(
                f"Only {available} left in stock",
                product_id=product_id,
                available=available,
                requested=quantity,
            )
        return available

    def check_lines(self, lines: Iterable, products: Mapping[int, Product]) -> None:
        """Re-check every line against the freshly loaded product rows."""
        for line in lines:
            product = products.get(line.product_id)
            available = int(product.inventory) if product is not None and product.active else 0
            if line.quantity > available:
                raise InventoryChanged(
                    f"Only {available} left in stock",
                    product_id=line.product_id,
                    available=available,
                )

    def decrement(self, lines: Iterable) -> None:
        """
        Take the finalized quantities out of stock.

        One conditional UPDATE per line, so two checkouts racing for the last
        unit cannot both succeed: the loser sees rowcount 0 and the caller's
        transaction is rolled back as a whole.
        """
        for line in lines:
            res = self.db.execute(
                update(Product)
                .where(Product.id == line.product_id, Product.inventory >= line.quantity)
                .values(inventory=Product.inventory - line.quantity)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                available = self.products.current_inventory(line.product_id)
                log.info(
                    "decrement lost race product=%s wanted=%s available=%s",
                    line.product_id,
                    line.quantity,
                    available,
                )
                raise InventoryChanged(
                    f"Only {available} left in stock",
                    product_id=line.product_id,
                    available=available,
                )
