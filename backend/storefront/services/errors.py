from typing import Any, Dict, Optional


class CheckoutError(Exception):
    """
    Base for every user-facing, recoverable failure in the cart/checkout flow.

    ``code`` is the stable machine-readable identifier sent to clients,
    ``http_status`` the status the API answers with, ``retriable`` tells the
    client whether repeating the request (possibly after changing the cart or
    payment method) can succeed.
    """

    code = "CHECKOUT_ERROR"
    http_status = 400
    retriable = True
    default_message = "Checkout failed"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retriable": self.retriable,
            "details": {k: _jsonable(v) for k, v in self.details.items()},
        }


def _jsonable(value):
    # Decimal and friends go out as strings
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


# --- cart / catalogue ---


class InvalidQuantity(CheckoutError):
    code = "INVALID_QUANTITY"
    default_message = "Quantity must be at least 1"


class ProductNotFound(CheckoutError):
    code = "PRODUCT_NOT_FOUND"
    http_status = 404
    default_message = "Product not found"


class InsufficientInventory(CheckoutError):
    code = "INSUFFICIENT_INVENTORY"
    http_status = 409
    default_message = "Not enough stock"


class CartItemNotFound(CheckoutError):
    code = "CART_ITEM_NOT_FOUND"
    http_status = 404
    default_message = "Cart item not found"


class EmptyCart(CheckoutError):
    code = "EMPTY_CART"
    default_message = "Cart is empty"


class CheckoutBusy(CheckoutError):
    code = "CHECKOUT_BUSY"
    http_status = 409
    default_message = "Another cart or checkout request is in progress, try again"


class UnsupportedCurrency(CheckoutError):
    code = "UNSUPPORTED_CURRENCY"
    default_message = "Currency not supported"


class InvalidAmount(CheckoutError):
    code = "INVALID_AMOUNT"
    default_message = "Amount must be greater than zero"


# --- payment ---


class PaymentSetupFailed(CheckoutError):
    code = "PAYMENT_SETUP_FAILED"
    http_status = 502
    default_message = "Could not set up the payment, please try again"


class IntentNotFound(CheckoutError):
    code = "INTENT_NOT_FOUND"
    http_status = 404
    retriable = False
    default_message = "Payment not found"


class PaymentNotConfirmed(CheckoutError):
    code = "PAYMENT_NOT_CONFIRMED"
    http_status = 402
    default_message = "Payment has not been confirmed"


# --- finalization ---


class InventoryChanged(CheckoutError):
    code = "INVENTORY_CHANGED"
    http_status = 409
    default_message = "Stock changed while you were checking out"


class PriceMismatch(CheckoutError):
    code = "PRICE_MISMATCH"
    http_status = 409
    default_message = "Prices changed since the payment was created"


class CartChanged(CheckoutError):
    code = "CART_CHANGED"
    http_status = 409
    default_message = "Cart changed since the payment was created"


class FinalizationInProgress(CheckoutError):
    code = "FINALIZATION_IN_PROGRESS"
    http_status = 409
    default_message = "This payment is already being finalized, try again shortly"


# --- orders ---


class OrderNotFound(CheckoutError):
    code = "ORDER_NOT_FOUND"
    http_status = 404
    retriable = False
    default_message = "Order not found"


class InvalidStatusTransition(CheckoutError):
    code = "INVALID_STATUS_TRANSITION"
    http_status = 409
    retriable = False
    default_message = "Order status change not allowed"


# --- wishlist / reviews ---


class WishlistItemExists(CheckoutError):
    code = "WISHLIST_ITEM_EXISTS"
    retriable = False
    default_message = "Item already in wishlist"


class WishlistItemNotFound(CheckoutError):
    code = "WISHLIST_ITEM_NOT_FOUND"
    http_status = 404
    retriable = False
    default_message = "Wishlist item not found"


class InvalidRating(CheckoutError):
    code = "INVALID_RATING"
    default_message = "Rating must be between 1 and 5"


class ReviewExists(CheckoutError):
    code = "REVIEW_EXISTS"
    http_status = 409
    retriable = False
    default_message = "You already reviewed this product"


class ReviewNotFound(CheckoutError):
    code = "REVIEW_NOT_FOUND"
    http_status = 404
    retriable = False
    default_message = "Review not found"
