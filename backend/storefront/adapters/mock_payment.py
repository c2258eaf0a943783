import json
import threading
import time
from collections import deque
from typing import Any, Dict, Optional
from uuid import uuid4

from storefront.adapters.payment_gateway import (
    GatewayEvent,
    GatewayIntent,
    PaymentGateway,
    PaymentGatewayError,
    PaymentTransientError,
)

# test payment methods, named like the processor's test tokens
PM_SUCCEEDS = "pm_card_visa"
PM_DECLINED = "pm_card_declined"
PM_REQUIRES_ACTION = "pm_card_3ds"

# recent operation names kept for inspection
CALL_LOG_SIZE = 256


class MockPaymentGateway(PaymentGateway):
    """
    In-memory payment processor for development and tests.

    Behaviour is driven by the payment method passed to ``confirm_intent``:
    ``pm_card_visa`` succeeds, ``pm_card_declined`` is declined and
    ``pm_card_3ds`` stays in ``requires_action`` until ``complete_action`` is
    called. Anything else succeeds. ``fail_next(n)`` makes the next n calls
    raise PaymentTransientError; ``hang_next(seconds)`` makes the next confirm
    sleep that long (to exercise confirm timeouts).
    """

    name = "mock"

    def __init__(self, delay_ms: int = 200):
        # Convert delay from milliseconds to seconds for time.sleep
        self.delay_seconds = delay_ms / 1000.0
        self._intents: Dict[str, GatewayIntent] = {}
        self._by_key: Dict[str, str] = {}
        self._fail_next = 0
        self._hang_next = 0.0
        self._lock = threading.Lock()
        self.calls = deque(maxlen=CALL_LOG_SIZE)

    # --- test controls ---

    def fail_next(self, n: int = 1) -> None:
        with self._lock:
            self._fail_next = n

    def hang_next(self, seconds: float) -> None:
        with self._lock:
            self._hang_next = seconds

    def complete_action(self, intent_id: str, approve: bool = True) -> GatewayIntent:
        """Simulate the customer finishing (or abandoning) 3-D Secure."""
        with self._lock:
            intent = self._get(intent_id)
            if intent.status == "requires_action":
                if approve:
                    intent.status = "succeeded"
                else:
                    intent.status = "failed"
                    intent.decline_reason = "authentication_failed"
            return _copy(intent)

    def set_status(self, intent_id: str, status: str, decline_reason: Optional[str] = None) -> None:
        with self._lock:
            intent = self._get(intent_id)
            intent.status = status
            intent.decline_reason = decline_reason

    # --- gateway ---

    def _simulate_call(self, op: str) -> None:
        self.calls.append(op)
        # Simulate network latency / gateway processing
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        with self._lock:
            if self._fail_next > 0:
                self._fail_next -= 1
                raise PaymentTransientError(f"Simulated transient gateway error during {op}")

    def _get(self, intent_id: str) -> GatewayIntent:
        intent = self._intents.get(intent_id)
        if intent is None:
            raise PaymentGatewayError(f"No such payment intent: {intent_id}")
        return intent

    def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayIntent:
        self._simulate_call("create_intent")
        with self._lock:
            if idempotency_key and idempotency_key in self._by_key:
                return _copy(self._intents[self._by_key[idempotency_key]])
            intent_id = f"pi_mock_{uuid4().hex[:24]}"
            intent = GatewayIntent(
                intent_id=intent_id,
                status="created",
                amount_minor=amount_minor,
                currency=currency.lower(),
                client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
                metadata=dict(metadata or {}),
            )
            self._intents[intent_id] = intent
            if idempotency_key:
                self._by_key[idempotency_key] = intent_id
            return _copy(intent)

    def confirm_intent(self, intent_id: str, payment_method: Optional[str] = None) -> GatewayIntent:
        with self._lock:
            hang, self._hang_next = self._hang_next, 0.0
        if hang:
            time.sleep(hang)
        self._simulate_call("confirm_intent")
        with self._lock:
            intent = self._get(intent_id)
            if intent.status in ("succeeded", "failed"):
                return _copy(intent)
            if payment_method == PM_DECLINED:
                intent.status = "failed"
                intent.decline_reason = "card_declined"
            elif payment_method == PM_REQUIRES_ACTION:
                intent.status = "requires_action"
            elif intent.status == "created":
                intent.status = "succeeded"
            return _copy(intent)

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        self._simulate_call("retrieve_intent")
        with self._lock:
            return _copy(self._get(intent_id))

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        """
        Accepts the processor's event shape:
        {"id", "type", "data": {"object": {"id", "status", "amount", "currency", ...}}}
        """
        try:
            event = json.loads(payload)
            obj = event["data"]["object"]
            intent = GatewayIntent(
                intent_id=obj["id"],
                status=_EVENT_STATUS.get(event["type"], obj.get("status", "created")),
                amount_minor=int(obj.get("amount", 0)),
                currency=obj.get("currency", "usd"),
                decline_reason=(obj.get("last_payment_error") or {}).get("code"),
                metadata=obj.get("metadata") or {},
            )
            return GatewayEvent(event_id=event.get("id", ""), type=event["type"], intent=intent)
        except (ValueError, KeyError, TypeError) as e:
            raise PaymentGatewayError(f"Malformed webhook payload: {e}")

    def build_event(self, intent_id: str, event_type: str = "payment_intent.succeeded") -> bytes:
        """Webhook body for an intent in its current state (tests, local tooling)."""
        with self._lock:
            intent = self._get(intent_id)
            body = {
                "id": f"evt_mock_{uuid4().hex[:16]}",
                "type": event_type,
                "data": {
                    "object": {
                        "id": intent.intent_id,
                        "status": intent.status,
                        "amount": intent.amount_minor,
                        "currency": intent.currency,
                        "metadata": intent.metadata,
                    }
                },
            }
        return json.dumps(body).encode()

    def health_check(self) -> bool:
        return True


_EVENT_STATUS = {
    "payment_intent.succeeded": "succeeded",
    "payment_intent.payment_failed": "failed",
    "payment_intent.requires_action": "requires_action",
}


def _copy(intent: GatewayIntent) -> GatewayIntent:
    return GatewayIntent(
        intent_id=intent.intent_id,
        status=intent.status,
        amount_minor=intent.amount_minor,
        currency=intent.currency,
        client_secret=intent.client_secret,
        decline_reason=intent.decline_reason,
        metadata=dict(intent.metadata),
    )
