import pytest

from storefront.adapters.payment_gateway import PaymentGatewayError
from storefront.adapters.stripe_payment import StripePaymentGateway, normalize_intent


def _pi(status, **extra):
    return {"id": "pi_123", "status": status, "amount": 2000, "currency": "usd", **extra}


@pytest.mark.parametrize(
    "stripe_status,expected",
    [
        ("requires_payment_method", "created"),
        ("requires_confirmation", "created"),
        ("requires_action", "requires_action"),
        ("processing", "requires_action"),
        ("succeeded", "succeeded"),
        ("canceled", "failed"),
    ],
)
def test_status_mapping(stripe_status, expected):
    assert normalize_intent(_pi(stripe_status)).status == expected


def test_refused_confirmation_is_failed():
    intent = normalize_intent(
        _pi("requires_payment_method", last_payment_error={"code": "card_declined", "decline_code": "insufficient_funds"})
    )
    assert intent.status == "failed"
    assert intent.decline_reason == "insufficient_funds"


def test_canceled_reason():
    intent = normalize_intent(_pi("canceled", cancellation_reason="abandoned"))
    assert intent.decline_reason == "abandoned"
    assert intent.amount_minor == 2000


def test_missing_key():
    with pytest.raises(PaymentGatewayError):
        StripePaymentGateway(api_key=None)
