from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.models.review import ProductReview


class ReviewRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, review: ProductReview) -> ProductReview:
        self.db.add(review)
        self.db.flush()
        return review

    def get(self, review_id: int) -> Optional[ProductReview]:
        return self.db.get(ProductReview, review_id)

    def get_by_user(self, user_id: int, product_id: int) -> Optional[ProductReview]:
        return (
            self.db.query(ProductReview)
            .filter(ProductReview.user_id == user_id, ProductReview.product_id == product_id)
            .first()
        )

    def list_for_product(self, product_id: int) -> List[ProductReview]:
        return (
            self.db.query(ProductReview)
            .filter(ProductReview.product_id == product_id)
            .order_by(ProductReview.helpful_count.desc(), ProductReview.id.desc())
            .all()
        )

    def stats(self, product_id: int) -> Tuple[Optional[float], int]:
        avg, count = (
            self.db.query(func.avg(ProductReview.rating), func.count(ProductReview.id))
            .filter(ProductReview.product_id == product_id)
            .one()
        )
        return (float(avg) if avg is not None else None), int(count or 0)
