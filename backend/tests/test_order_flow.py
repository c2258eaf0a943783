import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from storefront.db import SessionLocal
from storefront.models.cart_item import CartItem
from storefront.models.idempotency import IdempotencyRecord, IdempotencyStatus
from storefront.models.order import Order
from storefront.models.product import Product
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.idempotency_repo import IdempotencyRepository
from storefront.services.errors import (
    CartChanged,
    FinalizationInProgress,
    InvalidStatusTransition,
    InventoryChanged,
    OrderNotFound,
    PaymentNotConfirmed,
    PriceMismatch,
)
from storefront.services.order_service import OrderService, finalize_key
from storefront.services.payment_service import PaymentService


def _services(db, gateway):
    payments = PaymentService(db, gateway=gateway)
    return payments, OrderService(db, payments=payments)


def _paid_intent(payments, user_id, amount="20.00", currency="USD", method="pm_card_visa"):
    rec = payments.create_intent(user_id, amount, currency, shipping_address="1 Test Street")
    rec = payments.confirm(user_id, rec.intent_id, method)
    return rec.intent_id


def _inventory(db, pid):
    db.expire_all()
    return db.get(Product, pid).inventory


def _cart_count(db, user_id):
    return db.query(CartItem).filter(CartItem.user_id == user_id).count()


@pytest.fixture
def scenario(db, gateway, user, make_product, add_to_cart):
    """Cart [{p1, qty 2, 10.00}] with inventory 5."""
    user_id, _ = user
    pid = make_product(price="10.00", inventory=5, name="Tea")
    add_to_cart(user_id, pid, 2)
    return user_id, pid


def test_finalize_creates_order_and_clears_cart(db, gateway, scenario):
    user_id, pid = scenario
    payments, orders = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id)

    result = orders.finalize(user_id, intent_id)
    order = result.order
    assert result.duplicate is False
    assert order.order_number.startswith("ORD-")
    assert order.total_price == Decimal("20.00")
    assert order.status == "pending"
    assert order.currency == "USD"
    assert order.payment_intent_id == intent_id
    assert order.shipping_address == "1 Test Street"
    assert order.items == [
        {
            "product_id": pid,
            "name": "Tea",
            "price": "10.00",
            "quantity": 2,
            "image_url": None,
            "line_total": "20.00",
        }
    ]
    assert _inventory(db, pid) == 3
    assert _cart_count(db, user_id) == 0

    marker = db.query(IdempotencyRecord).filter_by(key=finalize_key(intent_id)).one()
    assert marker.status == IdempotencyStatus.COMPLETED
    assert marker.response_body["order_id"] == order.id


def test_finalize_twice_returns_same_order(db, gateway, scenario):
    user_id, pid = scenario
    payments, orders = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id)

    first = orders.finalize(user_id, intent_id)
    second = orders.finalize(user_id, intent_id)
    assert second.duplicate is True
    assert second.order.id == first.order.id
    assert db.query(Order).count() == 1
    assert _inventory(db, pid) == 3


def test_inventory_gone_at_finalization(db, gateway, scenario, update_product):
    user_id, pid = scenario
    payments, orders = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id)
    update_product(pid, inventory=1)

    with pytest.raises(InventoryChanged) as exc:
        orders.finalize(user_id, intent_id)
    assert exc.value.details == {"product_id": pid, "available": 1}
    assert db.query(Order).count() == 0
    assert _inventory(db, pid) == 1
    assert _cart_count(db, user_id) == 1

    marker = db.query(IdempotencyRecord).filter_by(key=finalize_key(intent_id)).one()
    assert marker.status == IdempotencyStatus.FAILED

    # stock comes back; the same intent can now be finalized
    update_product(pid, inventory=4)
    result = orders.finalize(user_id, intent_id)
    assert result.duplicate is False
    assert _inventory(db, pid) == 2

    db.expire_all()
    marker = db.query(IdempotencyRecord).filter_by(key=finalize_key(intent_id)).one()
    assert marker.status == IdempotencyStatus.COMPLETED
    assert marker.attempts == 2


def test_requires_action_is_not_confirmed(db, gateway, scenario):
    user_id, pid = scenario
    payments, orders = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id, method="pm_card_3ds")

    with pytest.raises(PaymentNotConfirmed) as exc:
        orders.finalize(user_id, intent_id)
    assert exc.value.details["status"] == "requires_action"
    assert db.query(Order).count() == 0
    assert _inventory(db, pid) == 5
    assert _cart_count(db, user_id) == 1
    assert db.query(IdempotencyRecord).count() == 0


def test_declined_payment_is_not_confirmed(db, gateway, scenario):
    user_id, _ = scenario
    payments, orders = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id, method="pm_card_declined")
    with pytest.raises(PaymentNotConfirmed):
        orders.finalize(user_id, intent_id)


def test_price_change_beyond_tolerance(db, gateway, scenario, update_product):
    user_id, pid = scenario
    payments, orders = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id)
    update_product(pid, price="12.00")

    with pytest.raises(PriceMismatch) as exc:
        orders.finalize(user_id, intent_id)
    assert exc.value.details["expected"] == Decimal("24.00")
    assert exc.value.details["charged"] == Decimal("20.00")
    assert db.query(Order).count() == 0
    assert _inventory(db, pid) == 5


def test_price_within_tolerance_in_display_currency(db, gateway, scenario):
    user_id, pid = scenario
    payments, orders = _services(db, gateway)
    # 20.00 USD at 0.93
    intent_id = _paid_intent(payments, user_id, amount="18.60", currency="EUR")

    order = orders.finalize(user_id, intent_id).order
    assert order.currency == "EUR"
    assert order.total_price == Decimal("20.00")


def test_cart_changed_after_payment(db, gateway, scenario, make_product, add_to_cart):
    user_id, pid = scenario
    payments, orders = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id)
    add_to_cart(user_id, make_product(price="1.00"), 1)

    with pytest.raises(CartChanged):
        orders.finalize(user_id, intent_id)
    assert _inventory(db, pid) == 5
    assert _cart_count(db, user_id) == 2


def test_concurrent_finalizations_for_last_unit(db, gateway, make_user, make_product, add_to_cart):
    pid = make_product(price="10.00", inventory=1)
    payments = PaymentService(db, gateway=gateway)
    buyers = []
    for _ in range(2):
        user_id, _ = make_user()
        add_to_cart(user_id, pid, 1)
        buyers.append((user_id, _paid_intent(payments, user_id, amount="10.00")))

    results, errors = [], []
    barrier = threading.Barrier(len(buyers))

    def run(user_id, intent_id):
        session = SessionLocal()
        try:
            svc = OrderService(session, payments=PaymentService(session, gateway=gateway))
            barrier.wait()
            results.append(svc.finalize(user_id, intent_id).order.id)
        except InventoryChanged as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=b) for b in buyers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(results) == 1
    assert len(errors) == 1
    assert _inventory(db, pid) == 0
    assert db.query(Order).count() == 1


def test_concurrent_finalize_same_intent(db, gateway, scenario):
    user_id, pid = scenario
    payments, _ = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id)

    results = []
    barrier = threading.Barrier(3)

    def run():
        session = SessionLocal()
        try:
            svc = OrderService(session, payments=PaymentService(session, gateway=gateway))
            barrier.wait()
            res = svc.finalize(user_id, intent_id)
            results.append((res.order.id, res.duplicate))
        finally:
            session.close()

    threads = [threading.Thread(target=run) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(results) == 3
    assert len({order_id for order_id, _ in results}) == 1
    assert sorted(dup for _, dup in results) == [False, True, True]
    assert _inventory(db, pid) == 3


def test_order_history_and_status(db, gateway, scenario, make_user):
    user_id, _ = scenario
    payments, orders = _services(db, gateway)
    order = orders.finalize(user_id, _paid_intent(payments, user_id)).order

    assert [o.id for o in orders.list_orders(user_id)] == [order.id]
    assert orders.get_order(user_id, order.id).id == order.id
    other, _ = make_user()
    with pytest.raises(OrderNotFound):
        orders.get_order(other, order.id)

    assert orders.update_status(order.id, "processing").status == "processing"
    with pytest.raises(InvalidStatusTransition):
        orders.update_status(order.id, "delivered")
    with pytest.raises(InvalidStatusTransition):
        orders.update_status(order.id, "lost")
    assert orders.update_status(order.id, "cancelled").status == "cancelled"
    with pytest.raises(InvalidStatusTransition):
        orders.update_status(order.id, "processing")


def test_storage_fault_mid_finalize_rolls_back(db, gateway, scenario, monkeypatch):
    user_id, pid = scenario
    payments, orders = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id)

    def broken_clear(self, user_id):
        raise OperationalError("DELETE FROM cart_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(CartRepository, "clear", broken_clear)
    with pytest.raises(OperationalError):
        orders.finalize(user_id, intent_id)

    assert db.query(Order).count() == 0
    assert _inventory(db, pid) == 5
    assert _cart_count(db, user_id) == 1
    marker = db.query(IdempotencyRecord).filter_by(key=finalize_key(intent_id)).one()
    assert marker.status == IdempotencyStatus.FAILED
    assert "disk I/O error" in marker.last_error

    monkeypatch.undo()
    result = orders.finalize(user_id, intent_id)
    assert result.duplicate is False
    assert _inventory(db, pid) == 3
    assert _cart_count(db, user_id) == 0


def test_abandoned_marker_is_reclaimed_once_stale(db, gateway, scenario):
    user_id, pid = scenario
    payments, _ = _services(db, gateway)
    intent_id = _paid_intent(payments, user_id)
    key = finalize_key(intent_id)

    # a worker claimed the marker and died before finishing
    _, claimed = IdempotencyRepository(db).begin(key, "finalize")
    assert claimed

    orders = OrderService(db, payments=payments, wait_seconds=0.2, stale_seconds=60)
    with pytest.raises(FinalizationInProgress):
        orders.finalize(user_id, intent_id)
    assert db.query(Order).count() == 0

    db.query(IdempotencyRecord).filter_by(key=key).update(
        {"updated_at": datetime.now(timezone.utc) - timedelta(minutes=5)}
    )
    db.commit()

    result = orders.finalize(user_id, intent_id)
    assert result.duplicate is False
    assert _inventory(db, pid) == 3
    assert _cart_count(db, user_id) == 0
    db.expire_all()
    marker = db.query(IdempotencyRecord).filter_by(key=key).one()
    assert marker.status == IdempotencyStatus.COMPLETED
    assert marker.attempts == 2
