from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.adapters.payment_gateway import (
    GatewayIntent,
    PaymentGateway,
    PaymentGatewayError,
    PaymentTransientError,
    get_default_gateway,
)
from storefront.config import settings
from storefront.models.payment_intent import (
    INTENT_TRANSITIONS,
    IntentStatus,
    PaymentIntentRecord,
)
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.payment_intent_repo import PaymentIntentRepository
from storefront.services.currency_service import get_currency, minor_unit, to_minor_units
from storefront.services.errors import (
    EmptyCart,
    IntentNotFound,
    InvalidAmount,
    PaymentSetupFailed,
)
from storefront.utils.logging import get_logger
from storefront.utils.transactions import transaction

log = get_logger(__name__)

# processor calls run here so a slow processor cannot hold a request forever
_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="payment-gateway")


def _predecessors(target: IntentStatus):
    return [s.value for s, allowed in INTENT_TRANSITIONS.items() if target in allowed]


class PaymentService:
    """
    Creates, confirms and tracks payment intents.

    The local ``payment_intents`` row mirrors the processor; every status change
    goes through ``_transition`` so terminal states are never overwritten, no
    matter whether the update comes from confirm, a poll or a webhook.
    """

    def __init__(
        self,
        db: Session,
        gateway: Optional[PaymentGateway] = None,
        confirm_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.db = db
        self.gateway = gateway or get_default_gateway()
        self.confirm_timeout = (
            settings.PAYMENT_CONFIRM_TIMEOUT_SECONDS if confirm_timeout is None else confirm_timeout
        )
        self.max_retries = settings.PAYMENT_MAX_RETRIES if max_retries is None else max_retries
        self.intents = PaymentIntentRepository(db)
        self.cart = CartRepository(db)

    def create_intent(
        self,
        user_id: int,
        amount,
        currency: str = "USD",
        payment_method: Optional[str] = None,
        shipping_address: Optional[str] = None,
    ) -> PaymentIntentRecord:
        cur = get_currency(currency)
        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise InvalidAmount(amount=amount)
        if not amount.is_finite() or amount <= 0:
            raise InvalidAmount(amount=amount)
        # the processor cannot charge a fraction of its minor unit, and the
        # stored amount must be exactly what was charged
        try:
            representable = amount == amount.quantize(minor_unit(cur.code))
        except InvalidOperation:
            representable = False
        if not representable:
            raise InvalidAmount(amount=amount)

        items = self.cart.list_for_user(user_id, fresh=True)
        if not items:
            raise EmptyCart()
        snapshot = [{"product_id": it.product_id, "quantity": it.quantity} for it in items]

        draft_id = f"draft_{uuid4().hex[:16]}"
        amount_minor = to_minor_units(amount, cur.code)

        # retry transient gateway errors; the draft id doubles as the processor
        # idempotency key so a retried create never makes a second intent
        attempt = 0
        while True:
            try:
                g = self.gateway.create_intent(
                    amount_minor,
                    cur.code,
                    metadata={"user_id": user_id, "order_draft_id": draft_id},
                    idempotency_key=draft_id,
                )
                break
            except PaymentTransientError as e:
                attempt += 1
                if attempt > self.max_retries:
                    log.warning("create_intent gave up after %s attempts: %s", attempt, e)
                    raise PaymentSetupFailed(reason=str(e))
                log.info("create_intent transient error (attempt %s): %s", attempt, e)
            except PaymentGatewayError as e:
                log.warning("create_intent failed for user=%s: %s", user_id, e)
                raise PaymentSetupFailed(reason=str(e))

        record = PaymentIntentRecord(
            intent_id=g.intent_id,
            order_draft_id=draft_id,
            user_id=user_id,
            amount=amount,
            amount_minor=amount_minor,
            currency=cur.code,
            status=IntentStatus.CREATED.value,
            client_secret=g.client_secret,
            payment_method=payment_method,
            shipping_address=shipping_address,
            cart_snapshot=snapshot,
            provider=self.gateway.name,
        )
        with transaction(self.db, "payment.create_intent"):
            self.intents.add(record)
        log.info(
            "intent created id=%s user=%s amount=%s %s lines=%s",
            record.intent_id,
            user_id,
            amount,
            cur.code,
            len(snapshot),
        )
        return record

    def get_for_user(self, user_id: int, intent_id: str) -> PaymentIntentRecord:
        rec = self.intents.get_for_user(user_id, intent_id)
        if rec is None:
            raise IntentNotFound(intent_id=intent_id)
        return rec

    def confirm(
        self, user_id: int, intent_id: str, payment_method: Optional[str] = None
    ) -> PaymentIntentRecord:
        rec = self.get_for_user(user_id, intent_id)
        if rec.intent_status.terminal:
            return rec

        if payment_method and payment_method != rec.payment_method:
            with transaction(self.db, "payment.set_method"):
                rec.payment_method = payment_method

        g = self._call_gateway(
            "confirm_intent", self.gateway.confirm_intent, intent_id, rec.payment_method
        )
        if g is None:
            # outcome unknown: keep it pending and let the client poll
            self._transition(rec, IntentStatus.REQUIRES_ACTION)
        else:
            self._apply(rec, g)
        log.info("intent confirm id=%s status=%s", intent_id, rec.status)
        return rec

    def refresh(self, user_id: int, intent_id: str) -> PaymentIntentRecord:
        rec = self.get_for_user(user_id, intent_id)
        return self.sync(rec)

    def sync(self, rec: PaymentIntentRecord) -> PaymentIntentRecord:
        """Pull the processor's current state for a non-terminal intent."""
        if rec.intent_status.terminal:
            return rec
        g = self._call_gateway("retrieve_intent", self.gateway.retrieve_intent, rec.intent_id)
        if g is not None:
            self._apply(rec, g)
        return rec

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Optional[PaymentIntentRecord]:
        """
        Apply a processor event. Unknown intents are ignored (returns None);
        PaymentGatewayError propagates for payloads that fail verification.
        """
        event = self.gateway.parse_webhook(payload, signature)
        rec = self.intents.get(event.intent.intent_id, fresh=True)
        if rec is None:
            log.info("webhook %s for unknown intent %s ignored", event.type, event.intent.intent_id)
            return None
        self._apply(rec, event.intent)
        log.info("webhook %s applied to intent=%s status=%s", event.type, rec.intent_id, rec.status)
        return rec

    def _call_gateway(self, op: str, fn, *args) -> Optional[GatewayIntent]:
        """
        Run a processor call with the confirm timeout. Returns None when the
        outcome is unknown (timeout or transient error).
        """
        future = _executor.submit(fn, *args)
        try:
            return future.result(timeout=self.confirm_timeout)
        except FuturesTimeout:
            log.warning("%s timed out after %.1fs", op, self.confirm_timeout)
            return None
        except PaymentTransientError as e:
            log.warning("%s transient error: %s", op, e)
            return None
        except PaymentGatewayError as e:
            log.warning("%s failed: %s", op, e)
            raise PaymentSetupFailed(reason=str(e))

    def _apply(self, rec: PaymentIntentRecord, g: GatewayIntent) -> bool:
        try:
            target = IntentStatus(g.status)
        except ValueError:
            log.warning("intent %s: unknown processor status %r", rec.intent_id, g.status)
            return False
        return self._transition(rec, target, g.decline_reason)

    def _transition(
        self, rec: PaymentIntentRecord, target: IntentStatus, reason: Optional[str] = None
    ) -> bool:
        """
        Move `rec` to `target` if the state machine allows it from whatever the
        row holds right now. The guard lives in the UPDATE's WHERE clause, so a
        confirm racing a webhook cannot overwrite a terminal state.
        """
        if rec.status == target.value:
            return False
        values = {"status": target.value, "updated_at": datetime.now(timezone.utc)}
        if target is IntentStatus.FAILED:
            values["decline_reason"] = (reason or "payment_failed")[:512]
        with transaction(self.db, "payment.transition"):
            res = self.db.execute(
                update(PaymentIntentRecord)
                .where(
                    PaymentIntentRecord.intent_id == rec.intent_id,
                    PaymentIntentRecord.status.in_(_predecessors(target)),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        self.db.refresh(rec)
        moved = res.rowcount == 1
        if moved:
            log.info("intent %s -> %s", rec.intent_id, target.value)
        else:
            log.debug("intent %s: %s -> %s not applied", rec.intent_id, rec.status, target.value)
        return moved
