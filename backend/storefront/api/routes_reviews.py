from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user_id
from storefront.db import get_db
from storefront.schemas.review_schema import ReviewIn, ReviewOut
from storefront.services.review_service import ReviewService

router = APIRouter(tags=["reviews"])


@router.get("/api/products/{product_id}/reviews", summary="Reviews for a product", response_model=List[ReviewOut])
def list_reviews(product_id: int, db: Session = Depends(get_db)):
    return [ReviewOut.model_validate(r) for r in ReviewService(db).list_for_product(product_id)]


@router.post(
    "/api/products/{product_id}/reviews",
    summary="Review a product",
    response_model=ReviewOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_review(
    product_id: int,
    payload: ReviewIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    review = ReviewService(db).submit(
        user_id, product_id, payload.rating, title=payload.title, comment=payload.comment
    )
    return ReviewOut.model_validate(review)


@router.post("/api/reviews/{review_id}/helpful", summary="Mark a review helpful", response_model=ReviewOut)
def mark_helpful(
    review_id: int,
    _user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ReviewOut.model_validate(ReviewService(db).mark_helpful(review_id))
