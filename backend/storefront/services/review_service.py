from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.models.review import ProductReview
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.review_repo import ReviewRepository
from storefront.services.errors import InvalidRating, ProductNotFound, ReviewExists, ReviewNotFound
from storefront.utils.logging import get_logger
from storefront.utils.transactions import transaction

log = get_logger(__name__)


class ReviewService:
    def __init__(self, db: Session):
        self.db = db
        self.reviews = ReviewRepository(db)
        self.products = ProductRepository(db)
        self.orders = OrderRepository(db)

    def submit(
        self,
        user_id: int,
        product_id: int,
        rating: int,
        title: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> ProductReview:
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            raise InvalidRating(rating=rating)
        product = self.products.get(product_id)
        if not product:
            raise ProductNotFound(product_id=product_id)
        if self.reviews.get_by_user(user_id, product_id):
            raise ReviewExists(product_id=product_id)

        with transaction(self.db, "review.submit"):
            review = self.reviews.add(
                ProductReview(
                    product_id=product_id,
                    user_id=user_id,
                    rating=rating,
                    title=title,
                    comment=comment,
                    verified_purchase=self.orders.user_bought_product(user_id, product_id),
                )
            )
            avg, count = self.reviews.stats(product_id)
            product.rating = round(avg, 2) if avg is not None else None
            product.review_count = count
        log.info("review user=%s product=%s rating=%s", user_id, product_id, rating)
        return review

    def list_for_product(self, product_id: int) -> List[ProductReview]:
        if not self.products.get(product_id):
            raise ProductNotFound(product_id=product_id)
        return self.reviews.list_for_product(product_id)

    def mark_helpful(self, review_id: int) -> ProductReview:
        review = self.reviews.get(review_id)
        if not review:
            raise ReviewNotFound(review_id=review_id)
        with transaction(self.db, "review.helpful"):
            review.helpful_count = (review.helpful_count or 0) + 1
        return review
