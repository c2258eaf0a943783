import time
from decimal import Decimal

import pytest

from storefront.adapters.mock_payment import CALL_LOG_SIZE, MockPaymentGateway
from storefront.adapters.payment_gateway import PaymentGatewayError
from storefront.models.cart_item import CartItem
from storefront.models.payment_intent import PaymentIntentRecord
from storefront.services.errors import (
    EmptyCart,
    IntentNotFound,
    InvalidAmount,
    PaymentSetupFailed,
    UnsupportedCurrency,
)
from storefront.services.payment_service import PaymentService


@pytest.fixture
def cart_user(user, make_product, add_to_cart):
    user_id, _ = user
    pid = make_product(price="10.00", inventory=5)
    add_to_cart(user_id, pid, 2)
    return user_id


def test_create_intent_snapshots_cart(db, gateway, cart_user):
    rec = PaymentService(db, gateway=gateway).create_intent(cart_user, "20.00", "usd")
    assert rec.intent_id.startswith("pi_mock_")
    assert rec.client_secret
    assert rec.status == "created"
    assert rec.currency == "USD"
    assert rec.amount == Decimal("20.00")
    assert rec.amount_minor == 2000
    assert [s["quantity"] for s in rec.cart_snapshot] == [2]


def test_create_intent_validation(db, gateway, cart_user, make_user):
    svc = PaymentService(db, gateway=gateway)
    with pytest.raises(UnsupportedCurrency):
        svc.create_intent(cart_user, "20.00", "XYZ")
    with pytest.raises(InvalidAmount):
        svc.create_intent(cart_user, "0", "USD")
    with pytest.raises(InvalidAmount):
        svc.create_intent(cart_user, "abc", "USD")
    with pytest.raises(InvalidAmount):
        svc.create_intent(cart_user, "20.005", "USD")
    with pytest.raises(InvalidAmount):
        svc.create_intent(cart_user, "3024.50", "JPY")

    empty_user, _ = make_user()
    with pytest.raises(EmptyCart):
        svc.create_intent(empty_user, "20.00", "USD")
    assert list(gateway.calls) == []


def test_create_intent_retries_transient_errors(db, gateway, cart_user):
    gateway.fail_next(2)
    rec = PaymentService(db, gateway=gateway, max_retries=2).create_intent(cart_user, "20.00")
    assert rec.status == "created"
    assert gateway.calls.count("create_intent") == 3


def test_create_intent_gives_up_without_persisting(db, gateway, cart_user):
    gateway.fail_next(3)
    with pytest.raises(PaymentSetupFailed):
        PaymentService(db, gateway=gateway, max_retries=2).create_intent(cart_user, "20.00")
    assert db.query(PaymentIntentRecord).count() == 0


def test_confirm_success_and_terminal_noop(db, gateway, cart_user):
    svc = PaymentService(db, gateway=gateway)
    rec = svc.create_intent(cart_user, "20.00", payment_method="pm_card_visa")
    rec = svc.confirm(cart_user, rec.intent_id)
    assert rec.status == "succeeded"

    calls = len(gateway.calls)
    rec = svc.confirm(cart_user, rec.intent_id, "pm_card_declined")
    assert rec.status == "succeeded"
    assert len(gateway.calls) == calls


def test_decline_leaves_cart_alone(db, gateway, cart_user):
    svc = PaymentService(db, gateway=gateway)
    rec = svc.create_intent(cart_user, "20.00")
    rec = svc.confirm(cart_user, rec.intent_id, "pm_card_declined")
    assert rec.status == "failed"
    assert rec.decline_reason == "card_declined"
    assert db.query(CartItem).filter(CartItem.user_id == cart_user).count() == 1


def test_requires_action_then_completed(db, gateway, cart_user):
    svc = PaymentService(db, gateway=gateway)
    rec = svc.create_intent(cart_user, "20.00")
    rec = svc.confirm(cart_user, rec.intent_id, "pm_card_3ds")
    assert rec.status == "requires_action"

    assert svc.refresh(cart_user, rec.intent_id).status == "requires_action"
    gateway.complete_action(rec.intent_id)
    assert svc.refresh(cart_user, rec.intent_id).status == "succeeded"


def test_confirm_timeout_stays_pending(db, gateway, cart_user):
    svc = PaymentService(db, gateway=gateway, confirm_timeout=0.1)
    rec = svc.create_intent(cart_user, "20.00")
    gateway.hang_next(0.5)
    rec = svc.confirm(cart_user, rec.intent_id, "pm_card_visa")
    assert rec.status == "requires_action"

    # the processor finishes in the background; a later poll picks it up
    time.sleep(1.0)
    assert svc.refresh(cart_user, rec.intent_id).status == "succeeded"


def test_intent_belongs_to_its_user(db, gateway, cart_user, make_user):
    svc = PaymentService(db, gateway=gateway)
    rec = svc.create_intent(cart_user, "20.00")
    other, _ = make_user()
    with pytest.raises(IntentNotFound):
        svc.confirm(other, rec.intent_id)
    with pytest.raises(IntentNotFound):
        svc.refresh(cart_user, "pi_does_not_exist")


def test_webhook_applies_status_once(db, gateway, cart_user):
    svc = PaymentService(db, gateway=gateway)
    rec = svc.create_intent(cart_user, "20.00")
    gateway.set_status(rec.intent_id, "succeeded")

    updated = svc.handle_webhook(gateway.build_event(rec.intent_id), None)
    assert updated.status == "succeeded"

    # a late failure event cannot undo a terminal state
    gateway.set_status(rec.intent_id, "failed", "card_declined")
    again = svc.handle_webhook(
        gateway.build_event(rec.intent_id, "payment_intent.payment_failed"), None
    )
    assert again.status == "succeeded"
    assert again.decline_reason is None


def test_webhook_unknown_or_malformed(db, gateway):
    svc = PaymentService(db, gateway=gateway)
    body = b'{"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_x"}}}'
    assert svc.handle_webhook(body, None) is None
    with pytest.raises(PaymentGatewayError):
        svc.handle_webhook(b"not json", None)


def test_mock_call_log_keeps_only_recent_calls():
    gw = MockPaymentGateway(delay_ms=0)
    first = gw.create_intent(1000, "USD", idempotency_key="draft_one")
    for _ in range(CALL_LOG_SIZE + 50):
        gw.retrieve_intent(first.intent_id)
    assert len(gw.calls) == CALL_LOG_SIZE
    assert "create_intent" not in gw.calls
