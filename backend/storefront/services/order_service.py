import time
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.models.idempotency import IdempotencyStatus
from storefront.models.order import ORDER_TRANSITIONS, Order, OrderStatus
from storefront.models.payment_intent import IntentStatus, PaymentIntentRecord
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.idempotency_repo import IdempotencyRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.currency_service import convert_to, price_tolerance
from storefront.services.errors import (
    CartChanged,
    CheckoutError,
    EmptyCart,
    FinalizationInProgress,
    InvalidStatusTransition,
    OrderNotFound,
    PaymentNotConfirmed,
    PriceMismatch,
)
from storefront.services.inventory_service import InventoryService
from storefront.services.payment_service import PaymentService
from storefront.services.pricing_service import compute_totals
from storefront.utils.locks import user_lock
from storefront.utils.logging import get_logger
from storefront.utils.transactions import transaction

log = get_logger(__name__)


@dataclass
class FinalizeResult:
    order: Order
    duplicate: bool = False


def finalize_key(intent_id: str) -> str:
    return f"finalize:{intent_id}"


class OrderService:
    def __init__(
        self,
        db: Session,
        payments: Optional[PaymentService] = None,
        wait_seconds: Optional[float] = None,
        stale_seconds: Optional[float] = None,
    ):
        self.db = db
        self.payments = payments or PaymentService(db)
        self.orders = OrderRepository(db)
        self.idem_repo = IdempotencyRepository(db)
        self.cart = CartRepository(db)
        self.products = ProductRepository(db)
        self.inventory = InventoryService(db)
        self.wait_seconds = settings.FINALIZE_WAIT_SECONDS if wait_seconds is None else wait_seconds
        self.stale_seconds = (
            settings.FINALIZE_STALE_SECONDS if stale_seconds is None else stale_seconds
        )

    def _gen_order_number(self) -> str:
        return f"ORD-{uuid4().hex[:10].upper()}"

    def finalize(
        self, user_id: int, intent_id: str, shipping_address: Optional[str] = None
    ) -> FinalizeResult:
        """
        Turn a succeeded payment intent into an Order.

        Safe to call any number of times for the same intent (client retries,
        webhook deliveries): exactly one Order is created and every caller gets
        it back. Rejections leave the cart, stock and orders untouched.
        """
        intent = self.payments.get_for_user(user_id, intent_id)
        self.payments.sync(intent)
        if intent.status != IntentStatus.SUCCEEDED.value:
            log.info("finalize refused intent=%s status=%s", intent_id, intent.status)
            raise PaymentNotConfirmed(intent_id=intent_id, status=intent.status)

        existing = self.orders.get_by_intent(intent_id)
        if existing:
            log.info("finalize duplicate intent=%s order=%s", intent_id, existing.order_number)
            return FinalizeResult(existing, duplicate=True)

        key = finalize_key(intent_id)
        _, claimed = self.idem_repo.begin(key, "finalize", stale_after=self.stale_seconds)
        if not claimed:
            result = self._wait_for_owner(key, intent_id)
            if result is not None:
                return result

        try:
            with user_lock(user_id):
                order = self._finalize_locked(user_id, intent, key, shipping_address)
        except IntegrityError:
            # lost the unique payment_intent_id race to another finalizer
            self.db.rollback()
            existing = self.orders.get_by_intent(intent_id)
            if existing:
                with transaction(self.db, "order.finalize.duplicate"):
                    self.idem_repo.mark_completed(
                        key, {"order_id": existing.id, "order_number": existing.order_number}
                    )
                return FinalizeResult(existing, duplicate=True)
            self.idem_repo.mark_failed(key, "integrity error")
            raise
        except CheckoutError as e:
            self.idem_repo.mark_failed(key, f"{e.code}: {e.message}")
            log.info("finalize rejected intent=%s code=%s details=%s", intent_id, e.code, e.details)
            raise
        except Exception as e:
            self.idem_repo.mark_failed(key, repr(e))
            raise

        log.info(
            "order finalized order=%s intent=%s user=%s total=%s",
            order.order_number,
            intent_id,
            user_id,
            order.total_price,
        )
        return FinalizeResult(order, duplicate=False)

    def _wait_for_owner(self, key: str, intent_id: str) -> Optional[FinalizeResult]:
        """
        Another request holds the marker. Wait briefly for its Order; returns
        None if the marker became ours (the owner failed or went stale and we
        reclaimed it).
        """
        deadline = time.monotonic() + self.wait_seconds
        while True:
            self.db.expire_all()
            existing = self.orders.get_by_intent(intent_id)
            if existing:
                return FinalizeResult(existing, duplicate=True)
            rec = self.idem_repo.get(key)
            if rec is None or rec.status != IdempotencyStatus.COMPLETED:
                _, claimed = self.idem_repo.begin(key, "finalize", stale_after=self.stale_seconds)
                if claimed:
                    return None
            if time.monotonic() >= deadline:
                break
            time.sleep(0.05)
        log.info("finalize for intent=%s still in progress elsewhere", intent_id)
        raise FinalizationInProgress(intent_id=intent_id)

    def _finalize_locked(
        self,
        user_id: int,
        intent: PaymentIntentRecord,
        key: str,
        shipping_address: Optional[str],
    ) -> Order:
        items = self.cart.list_for_user(user_id, fresh=True)
        if not items:
            raise EmptyCart()

        current = sorted((it.product_id, it.quantity) for it in items)
        paid_for = sorted((int(s["product_id"]), int(s["quantity"])) for s in intent.cart_snapshot or [])
        if current != paid_for:
            raise CartChanged(intent_id=intent.intent_id)

        products = self.products.get_many([it.product_id for it in items], fresh=True)
        self.inventory.check_lines(items, products)
        totals = compute_totals(items, products)

        # prices are authoritative now; the intent was created from the
        # client's figure, converted into the currency the customer paid in
        expected = convert_to(totals.total, intent.currency)
        charged = Decimal(str(intent.amount))
        if abs(expected - charged) > price_tolerance(intent.currency):
            raise PriceMismatch(expected=expected, charged=charged, currency=intent.currency)

        with transaction(self.db, "order.finalize"):
            order = self.orders.add(
                Order(
                    order_number=self._gen_order_number(),
                    user_id=user_id,
                    status=OrderStatus.PENDING.value,
                    total_price=totals.total,
                    currency=intent.currency,
                    payment_method=intent.payment_method or intent.provider,
                    shipping_address=shipping_address or intent.shipping_address or "",
                    items=[line.snapshot() for line in totals.line_items],
                    payment_intent_id=intent.intent_id,
                )
            )
            self.inventory.decrement(totals.line_items)
            self.cart.clear(user_id)
            self.idem_repo.mark_completed(
                key, {"order_id": order.id, "order_number": order.order_number}
            )
        return order

    # --- order history / fulfilment ---

    def list_orders(self, user_id: int) -> List[Order]:
        return self.orders.list_for_user(user_id)

    def get_order(self, user_id: int, order_id: int) -> Order:
        order = self.orders.get(order_id)
        if not order or order.user_id != user_id:
            raise OrderNotFound(order_id=order_id)
        return order

    def list_all_orders(self, status: Optional[str] = None, limit: int = 100) -> List[Order]:
        return self.orders.list_all(status=status, limit=limit)

    def update_status(self, order_id: int, status: str) -> Order:
        order = self.orders.get(order_id)
        if not order:
            raise OrderNotFound(order_id=order_id)
        try:
            target = OrderStatus(status)
        except ValueError:
            raise InvalidStatusTransition(f"Unknown order status: {status}", status=status)
        current = OrderStatus(order.status)
        if target not in ORDER_TRANSITIONS[current]:
            raise InvalidStatusTransition(
                f"Cannot move order from {current.value} to {target.value}",
                order_id=order_id,
                current=current.value,
                requested=target.value,
            )
        with transaction(self.db, "order.update_status"):
            order.status = target.value
        log.info("order %s status %s -> %s", order.order_number, current.value, target.value)
        return order
