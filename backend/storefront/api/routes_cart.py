from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user_id
from storefront.config import settings
from storefront.db import get_db
from storefront.schemas.cart_schema import AddItemIn, CartOut, UpdateItemIn
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


def _cart(svc: CartService, user_id: int, currency: Optional[str]) -> CartOut:
    return CartOut.from_view(svc.view(user_id, currency), settings.BASE_CURRENCY)


@router.get("", summary="Get cart", response_model=CartOut)
def get_cart(
    currency: Optional[str] = Query(None, description="display currency code"),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return _cart(CartService(db), user_id, currency)


@router.post(
    "/items",
    summary="Add item to cart",
    response_model=CartOut,
    status_code=status.HTTP_201_CREATED,
)
def add_item(
    payload: AddItemIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    svc.add_item(user_id, payload.product_id, payload.quantity)
    return _cart(svc, user_id, None)


@router.patch("/items/{item_id}", summary="Change quantity", response_model=CartOut)
def update_item(
    item_id: int,
    payload: UpdateItemIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    svc.update_quantity(user_id, item_id, payload.quantity)
    return _cart(svc, user_id, None)


@router.delete("/items/{item_id}", summary="Remove item", response_model=CartOut)
def remove_item(
    item_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    svc.remove_item(user_id, item_id)
    return _cart(svc, user_id, None)


@router.delete("", summary="Empty the cart")
def clear_cart(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    removed = CartService(db).clear(user_id)
    return {"ok": True, "removed": removed}
