from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Optional

from storefront.config import settings


class PaymentGatewayError(Exception):
    """Any failure talking to the payment processor."""


class PaymentTransientError(PaymentGatewayError):
    """Temporary processor or network error, suggesting a retry is appropriate."""


@dataclass
class GatewayIntent:
    """Processor view of a payment intent, normalized to our status names."""

    intent_id: str
    status: str  # created | requires_action | succeeded | failed
    amount_minor: int
    currency: str
    client_secret: Optional[str] = None
    decline_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayEvent:
    event_id: str
    type: str
    intent: GatewayIntent


class PaymentGateway:
    """
    Contract between the payment service and a processor.

    Implementations raise PaymentTransientError for anything worth retrying and
    PaymentGatewayError otherwise. A decline during confirm is not an
    exception: it comes back as an intent with status ``failed``.
    """

    name = "base"

    def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayIntent:
        raise NotImplementedError

    def confirm_intent(self, intent_id: str, payment_method: Optional[str] = None) -> GatewayIntent:
        raise NotImplementedError

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        raise NotImplementedError

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        raise NotImplementedError

    def health_check(self) -> bool:
        return True


def build_gateway(provider: Optional[str] = None) -> PaymentGateway:
    provider = (provider or settings.PAYMENT_PROVIDER).lower()
    if provider == "stripe":
        from storefront.adapters.stripe_payment import StripePaymentGateway

        return StripePaymentGateway(
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            api_version=settings.STRIPE_API_VERSION,
        )
    if provider == "mock":
        from storefront.adapters.mock_payment import MockPaymentGateway

        return MockPaymentGateway(delay_ms=settings.PAYMENT_MOCK_DELAY_MS)
    raise ValueError(f"Unknown payment provider: {provider}")


@lru_cache(maxsize=1)
def get_default_gateway() -> PaymentGateway:
    # one instance per process; the mock keeps its intents in memory
    return build_gateway()
