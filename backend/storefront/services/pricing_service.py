from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Union

from storefront.models.product import Product
from storefront.services.errors import InvalidQuantity, ProductNotFound

TWO_PLACES = Decimal("0.01")


def _dec(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round_money(value) -> Decimal:
    return _dec(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def effective_price(product: Product) -> Decimal:
    """Sale price when one is set and positive, otherwise list price (unrounded)."""
    sale = product.sale_price
    if sale is not None and _dec(sale) > 0:
        return _dec(sale)
    return _dec(product.price)


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    image_url: Optional[str] = None

    def snapshot(self) -> dict:
        """JSON-safe dict stored in Order.items."""
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price": str(self.unit_price),
            "quantity": self.quantity,
            "image_url": self.image_url,
            "line_total": str(self.line_total),
        }


@dataclass(frozen=True)
class Totals:
    line_items: List[PricedLine]
    subtotal: Decimal
    total: Decimal


def compute_totals(
    cart_items: Iterable,
    products: Union[Mapping[int, Product], Iterable[Product]],
) -> Totals:
    """
    Price a cart snapshot against the given product state.

    ``cart_items`` are anything with ``product_id`` and ``quantity`` (cart rows,
    snapshot entries). Each line is rounded to cents before it is added, so the
    total is always the sum of the displayed line totals. No tax or shipping.
    """
    if not isinstance(products, Mapping):
        products = {p.id: p for p in products}
    by_id: Dict[int, Product] = dict(products)

    lines: List[PricedLine] = []
    subtotal = Decimal("0.00")
    for item in cart_items:
        qty = item.quantity
        if not isinstance(qty, int) or isinstance(qty, bool) or qty < 1:
            raise InvalidQuantity(product_id=item.product_id, quantity=qty)
        product = by_id.get(item.product_id)
        if product is None:
            raise ProductNotFound(product_id=item.product_id)
        unit = effective_price(product)
        line_total = round_money(unit * qty)
        lines.append(
            PricedLine(
                product_id=product.id,
                name=product.name,
                unit_price=unit,
                quantity=qty,
                line_total=line_total,
                image_url=product.image_url,
            )
        )
        subtotal += line_total

    return Totals(line_items=lines, subtotal=subtotal, total=subtotal)
