from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from storefront.adapters.payment_gateway import PaymentGateway, PaymentGatewayError
from storefront.api.deps import get_current_user_id, get_payment_gateway
from storefront.db import get_db
from storefront.models.payment_intent import IntentStatus
from storefront.schemas.checkout_schema import (
    ConfirmIn,
    CreateIntentIn,
    FinalizeIn,
    FinalizeOk,
    IntentOut,
)
from storefront.schemas.order_schema import OrderOut
from storefront.services.errors import CheckoutError
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from storefront.utils.logging import get_logger

router = APIRouter(prefix="/api/checkout", tags=["checkout"])
log = get_logger(__name__)


@router.post("/create-intent", summary="Create a payment intent for the cart", response_model=IntentOut)
def create_intent(
    payload: CreateIntentIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    rec = PaymentService(db, gateway=gateway).create_intent(
        user_id,
        payload.amount,
        payload.currency,
        payment_method=payload.payment_method,
        shipping_address=payload.shipping_address,
    )
    return IntentOut.from_record(rec)


@router.post("/confirm", summary="Confirm a payment intent", response_model=IntentOut)
def confirm(
    payload: ConfirmIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    rec = PaymentService(db, gateway=gateway).confirm(
        user_id, payload.intent_id, payload.payment_method
    )
    return IntentOut.from_record(rec)


@router.get("/intents/{intent_id}", summary="Current payment status", response_model=IntentOut)
def get_intent(
    intent_id: str,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    rec = PaymentService(db, gateway=gateway).refresh(user_id, intent_id)
    return IntentOut.from_record(rec)


@router.post("/finalize", summary="Turn a paid intent into an order", response_model=FinalizeOk)
def finalize(
    payload: FinalizeIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    # rejections are CheckoutErrors; main.py renders them as {"result": "error", ...}
    payments = PaymentService(db, gateway=gateway)
    result = OrderService(db, payments=payments).finalize(
        user_id, payload.intent_id, payload.shipping_address
    )
    return FinalizeOk(order=OrderOut.from_order(result.order), duplicate=result.duplicate)


def _process_webhook(db: Session, gateway: PaymentGateway, body: bytes, signature: Optional[str]) -> dict:
    payments = PaymentService(db, gateway=gateway)
    try:
        rec = payments.handle_webhook(body, signature)
    except PaymentGatewayError as e:
        log.warning("webhook rejected: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    if rec is None or rec.status != IntentStatus.SUCCEEDED.value:
        return {"received": True, "finalized": False}

    try:
        result = OrderService(db, payments=payments).finalize(rec.user_id, rec.intent_id)
    except CheckoutError as e:
        # acknowledged anyway; the customer's own finalize call reports the problem
        log.warning("webhook finalize for intent=%s failed: %s", rec.intent_id, e.code)
        return {"received": True, "finalized": False, "error": e.to_dict()}
    return {
        "received": True,
        "finalized": True,
        "orderNumber": result.order.order_number,
        "duplicate": result.duplicate,
    }


@router.post("/webhook", summary="Payment processor events")
async def webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    body = await request.body()
    return await run_in_threadpool(_process_webhook, db, gateway, body, stripe_signature)
