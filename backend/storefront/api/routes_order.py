from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.adapters.payment_gateway import PaymentGateway
from storefront.api.deps import get_current_user_id, get_payment_gateway, require_admin
from storefront.db import get_db
from storefront.models.user import User
from storefront.schemas.order_schema import OrderOut, OrderStatusIn
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService

router = APIRouter(tags=["orders"])


def _service(db: Session, gateway: PaymentGateway) -> OrderService:
    return OrderService(db, payments=PaymentService(db, gateway=gateway))


@router.get("/api/orders", summary="My orders", response_model=List[OrderOut])
def list_orders(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return [OrderOut.from_order(o) for o in _service(db, gateway).list_orders(user_id)]


@router.get("/api/orders/{order_id}", summary="Order detail", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return OrderOut.from_order(_service(db, gateway).get_order(user_id, order_id))


@router.get("/api/admin/orders", summary="All orders (admin)", response_model=List[OrderOut])
def list_all_orders(
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    orders = _service(db, gateway).list_all_orders(status=status, limit=limit)
    return [OrderOut.from_order(o) for o in orders]


@router.patch("/api/admin/orders/{order_id}/status", summary="Advance order status", response_model=OrderOut)
def update_status(
    order_id: int,
    payload: OrderStatusIn,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return OrderOut.from_order(_service(db, gateway).update_status(order_id, payload.status))
