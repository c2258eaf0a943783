from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user_id
from storefront.db import get_db
from storefront.schemas.product_schema import ProductOut
from storefront.schemas.wishlist_schema import WishlistIn, WishlistItemOut
from storefront.services.wishlist_service import WishlistService

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


@router.get("", summary="My wishlist", response_model=List[WishlistItemOut])
def list_wishlist(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return [
        WishlistItemOut(
            id=item.id,
            product_id=item.product_id,
            created_at=item.created_at,
            product=ProductOut.from_product(product),
        )
        for item, product in WishlistService(db).list(user_id)
    ]


@router.post("", summary="Add to wishlist", status_code=status.HTTP_201_CREATED)
def add_to_wishlist(
    payload: WishlistIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    item = WishlistService(db).add(user_id, payload.product_id)
    return {"id": item.id, "productId": item.product_id}


@router.post("/toggle", summary="Add or remove a product")
def toggle(
    payload: WishlistIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    wishlisted = WishlistService(db).toggle(user_id, payload.product_id)
    return {"productId": payload.product_id, "wishlisted": wishlisted}


@router.delete("/{item_id}", summary="Remove from wishlist")
def remove_from_wishlist(
    item_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    WishlistService(db).remove(user_id, item_id)
    return {"ok": True}
