from typing import Any, Dict, Mapping, Optional

import stripe

from storefront.adapters.payment_gateway import (
    GatewayEvent,
    GatewayIntent,
    PaymentGateway,
    PaymentGatewayError,
    PaymentTransientError,
)
from storefront.utils.logging import get_logger

log = get_logger(__name__)

# processor status -> ours. "processing" is still pending on the processor
# side, so it is reported like requires_action: not final, poll again later.
STATUS_MAP = {
    "requires_payment_method": "created",
    "requires_confirmation": "created",
    "requires_action": "requires_action",
    "processing": "requires_action",
    "requires_capture": "succeeded",
    "succeeded": "succeeded",
    "canceled": "failed",
}


def normalize_intent(obj: Mapping[str, Any]) -> GatewayIntent:
    """Build a GatewayIntent from a processor PaymentIntent object (or its dict form)."""
    raw = obj.get("status")
    status = STATUS_MAP.get(raw, "created")
    error = obj.get("last_payment_error") or {}
    decline_reason = error.get("decline_code") or error.get("code")
    if raw == "requires_payment_method" and error:
        # a confirmation was attempted and refused
        status = "failed"
    if raw == "canceled" and not decline_reason:
        decline_reason = obj.get("cancellation_reason") or "canceled"
    return GatewayIntent(
        intent_id=obj["id"],
        status=status,
        amount_minor=int(obj.get("amount") or 0),
        currency=obj.get("currency") or "usd",
        client_secret=obj.get("client_secret"),
        decline_reason=decline_reason,
        metadata=dict(obj.get("metadata") or {}),
    )


class StripePaymentGateway(PaymentGateway):
    name = "stripe"

    def __init__(
        self,
        api_key: Optional[str],
        webhook_secret: Optional[str] = None,
        api_version: Optional[str] = None,
    ):
        if not api_key:
            raise PaymentGatewayError("STRIPE_SECRET_KEY is not configured")
        stripe.api_key = api_key
        if api_version:
            stripe.api_version = api_version
        self.webhook_secret = webhook_secret

    @staticmethod
    def _translate(op: str, e: "stripe.StripeError") -> PaymentGatewayError:
        msg = f"{op}: {e.user_message or e}"
        # connection problems, throttling and processor-side 5xx are worth a retry
        if isinstance(e, (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)):
            return PaymentTransientError(msg)
        return PaymentGatewayError(msg)

    def _call(self, op: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except stripe.StripeError as e:
            raise self._translate(op, e) from e

    def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayIntent:
        pi = self._call(
            "create_intent",
            stripe.PaymentIntent.create,
            amount=amount_minor,
            currency=currency.lower(),
            metadata={k: str(v) for k, v in (metadata or {}).items()},
            payment_method_types=["card"],
            idempotency_key=idempotency_key,
        )
        return normalize_intent(pi)

    def confirm_intent(self, intent_id: str, payment_method: Optional[str] = None) -> GatewayIntent:
        params = {"payment_method": payment_method} if payment_method else {}
        try:
            pi = stripe.PaymentIntent.confirm(intent_id, **params)
        except stripe.CardError as e:
            log.info("stripe declined intent=%s code=%s", intent_id, e.code)
            intent = self.retrieve_intent(intent_id)
            intent.status = "failed"
            intent.decline_reason = getattr(e, "code", None) or "card_declined"
            return intent
        except stripe.StripeError as e:
            raise self._translate("confirm_intent", e) from e
        return normalize_intent(pi)

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        pi = self._call("retrieve_intent", stripe.PaymentIntent.retrieve, intent_id)
        return normalize_intent(pi)

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        if not self.webhook_secret:
            raise PaymentGatewayError("STRIPE_WEBHOOK_SECRET is not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise PaymentGatewayError(f"Invalid webhook: {e}") from e
        intent = normalize_intent(event["data"]["object"])
        if event["type"] == "payment_intent.payment_failed":
            intent.status = "failed"
        return GatewayEvent(event_id=event["id"], type=event["type"], intent=intent)

    def health_check(self) -> bool:
        try:
            stripe.Balance.retrieve()
            return True
        except stripe.StripeError:
            return False
