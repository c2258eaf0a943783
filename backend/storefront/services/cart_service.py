from dataclasses import dataclass
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.models.cart_item import CartItem
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.currency_service import Currency, convert, find_currency
from storefront.services.errors import CartItemNotFound, InvalidQuantity
from storefront.services.inventory_service import InventoryService
from storefront.services.pricing_service import PricedLine, compute_totals
from storefront.utils.locks import user_lock
from storefront.utils.logging import get_logger
from storefront.utils.transactions import transaction

log = get_logger(__name__)


@dataclass
class CartLine:
    item_id: int
    priced: PricedLine
    available: int


@dataclass
class CartView:
    lines: List[CartLine]
    subtotal: Decimal  # base currency
    total: Decimal
    currency: Currency
    display_total: Decimal  # in `currency`
    item_count: int


def _check_qty(qty, product_id=None):
    if not isinstance(qty, int) or isinstance(qty, bool) or qty < 1:
        raise InvalidQuantity(product_id=product_id, quantity=qty)


class CartService:
    """Server-side cart. Every mutation holds the user's checkout lock."""

    def __init__(self, db: Session):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.product_repo = ProductRepository(db)
        self.inventory = InventoryService(db)

    def add_item(self, user_id: int, product_id: int, qty: int = 1) -> CartItem:
        _check_qty(qty, product_id)
        with user_lock(user_id):
            existing = self.cart_repo.get_by_product(user_id, product_id)
            wanted = qty + (existing.quantity if existing else 0)
            # the check is on the cumulative quantity, not just this increment
            self.inventory.reserve(product_id, wanted)
            with transaction(self.db, "cart.add"):
                item = self.cart_repo.add_or_increment(user_id, product_id, qty)
        log.debug("cart add user=%s product=%s qty=%s -> %s", user_id, product_id, qty, wanted)
        return item

    def update_quantity(self, user_id: int, item_id: int, qty: int) -> CartItem:
        with user_lock(user_id):
            item = self.cart_repo.get_item(user_id, item_id)
            if not item:
                raise CartItemNotFound(item_id=item_id)
            _check_qty(qty, item.product_id)
            self.inventory.reserve(item.product_id, qty)
            with transaction(self.db, "cart.update"):
                self.cart_repo.set_quantity(item, qty)
        return item

    def remove_item(self, user_id: int, item_id: int) -> None:
        with user_lock(user_id):
            item = self.cart_repo.get_item(user_id, item_id)
            if not item:
                raise CartItemNotFound(item_id=item_id)
            with transaction(self.db, "cart.remove"):
                self.cart_repo.remove_item(item)

    def clear(self, user_id: int) -> int:
        with user_lock(user_id):
            with transaction(self.db, "cart.clear"):
                removed = self.cart_repo.clear(user_id)
        return removed

    def view(self, user_id: int, currency: str = None) -> CartView:
        cur = find_currency(currency or settings.BASE_CURRENCY)
        items = self.cart_repo.list_for_user(user_id, fresh=True)
        products = self.product_repo.get_many([it.product_id for it in items], fresh=True)
        # rows whose product has been removed from the catalogue are not shown
        visible = [it for it in items if it.product_id in products]
        totals = compute_totals(visible, products)
        lines = [
            CartLine(
                item_id=it.id,
                priced=priced,
                available=max(0, int(products[it.product_id].inventory)),
            )
            for it, priced in zip(visible, totals.line_items)
        ]
        return CartView(
            lines=lines,
            subtotal=totals.subtotal,
            total=totals.total,
            currency=cur,
            display_total=convert(totals.total, cur.rate),
            item_count=sum(it.quantity for it in visible),
        )
