from decimal import Decimal

from storefront.models.order import Order
from storefront.models.product import Product


def test_submit_and_list_reviews(client, db, make_user, make_product):
    pid = make_product()
    _, alice = make_user()
    _, bob = make_user()

    res = client.post(f"/api/products/{pid}/reviews", json={"rating": 5, "title": "Great"}, headers=alice)
    assert res.status_code == 201
    assert res.json()["verifiedPurchase"] is False
    client.post(f"/api/products/{pid}/reviews", json={"rating": 2}, headers=bob)

    res = client.post(f"/api/products/{pid}/reviews", json={"rating": 4}, headers=alice)
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "REVIEW_EXISTS"

    reviews = client.get(f"/api/products/{pid}/reviews").json()
    assert sorted(r["rating"] for r in reviews) == [2, 5]

    db.expire_all()
    product = db.get(Product, pid)
    assert product.review_count == 2
    assert product.rating == 3.5


def test_rating_out_of_range(client, user, make_product):
    _, headers = user
    pid = make_product()
    res = client.post(f"/api/products/{pid}/reviews", json={"rating": 6}, headers=headers)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_RATING"


def test_verified_purchase(client, db, user, make_product):
    user_id, headers = user
    pid = make_product()
    db.add(
        Order(
            order_number="ORD-TEST",
            user_id=user_id,
            total_price=Decimal("10.00"),
            payment_method="pm_card_visa",
            items=[{"product_id": pid, "name": "P", "price": "10.00", "quantity": 1, "line_total": "10.00"}],
        )
    )
    db.commit()
    res = client.post(f"/api/products/{pid}/reviews", json={"rating": 4}, headers=headers)
    assert res.json()["verifiedPurchase"] is True


def test_mark_helpful(client, user, make_product):
    _, headers = user
    pid = make_product()
    review_id = client.post(f"/api/products/{pid}/reviews", json={"rating": 4}, headers=headers).json()["id"]
    res = client.post(f"/api/reviews/{review_id}/helpful", headers=headers)
    assert res.json()["helpfulCount"] == 1
    assert client.post("/api/reviews/9999/helpful", headers=headers).status_code == 404
