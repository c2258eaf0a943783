from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from storefront.models.payment_intent import PaymentIntentRecord
from storefront.schemas.base import ApiModel
from storefront.schemas.order_schema import OrderOut


class CreateIntentIn(ApiModel):
    amount: Decimal
    currency: str = "USD"
    payment_method: Optional[str] = None
    shipping_address: Optional[str] = None


class ConfirmIn(ApiModel):
    intent_id: str
    payment_method: Optional[str] = None


class FinalizeIn(ApiModel):
    intent_id: str
    shipping_address: Optional[str] = None


class IntentOut(ApiModel):
    intent_id: str
    client_secret: Optional[str] = None
    status: str
    amount: Decimal
    currency: str
    order_draft_id: str
    decline_reason: Optional[str] = None

    @classmethod
    def from_record(cls, rec: PaymentIntentRecord) -> "IntentOut":
        return cls(
            intent_id=rec.intent_id,
            client_secret=rec.client_secret,
            status=rec.status,
            amount=rec.amount,
            currency=rec.currency,
            order_draft_id=rec.order_draft_id,
            decline_reason=rec.decline_reason,
        )


class ErrorBody(ApiModel):
    code: str
    message: str
    retriable: bool
    details: Dict[str, Any] = {}


class FinalizeOk(ApiModel):
    result: Literal["ok"] = "ok"
    order: OrderOut
    duplicate: bool = False


class ErrorResult(ApiModel):
    result: Literal["error"] = "error"
    error: ErrorBody
