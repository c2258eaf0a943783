from fastapi import APIRouter, Depends
from sqlalchemy import text

from storefront.adapters.payment_gateway import PaymentGateway
from storefront.api.deps import get_payment_gateway
from storefront.db import engine
from storefront.utils.logging import get_logger

router = APIRouter()
log = get_logger(__name__)


@router.get("/health", tags=["health"])
def health(gateway: PaymentGateway = Depends(get_payment_gateway)):
    db_ok = False
    payment_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except Exception:
        log.exception("health: database check failed")
    try:
        payment_ok = gateway.health_check()
    except Exception:
        log.exception("health: payment gateway check failed")

    return {
        "status": "ok" if db_ok and payment_ok else "degraded",
        "db": db_ok,
        "paymentGateway": gateway.name,
        "paymentGatewayOk": payment_ok,
    }
