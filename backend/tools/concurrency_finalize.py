import argparse
import concurrent.futures
import os
from uuid import uuid4

import requests

BASE = os.environ.get("STOREFRONT_BASE", "http://127.0.0.1:8000")


def register(session: requests.Session):
    name = f"load-{uuid4().hex[:8]}"
    r = session.post(
        f"{BASE}/api/auth/register",
        json={"username": name, "email": f"{name}@example.com", "password": "secret123"},
        timeout=10,
    )
    r.raise_for_status()
    token = r.json()["token"]
    return {"Authorization": f"Bearer {token}"}


def paid_intent(product_id, qty):
    """Register a fresh shopper, fill the cart and pay. Returns (headers, intent_id)."""
    s = requests.Session()
    headers = register(s)
    r = s.post(
        f"{BASE}/api/cart/items",
        json={"productId": product_id, "quantity": qty},
        headers=headers,
        timeout=10,
    )
    r.raise_for_status()
    cart = s.get(f"{BASE}/api/cart", headers=headers, timeout=10).json()

    r = s.post(
        f"{BASE}/api/checkout/create-intent",
        json={"amount": cart["total"], "currency": cart["baseCurrency"], "paymentMethod": "pm_card_visa"},
        headers=headers,
        timeout=20,
    )
    r.raise_for_status()
    intent_id = r.json()["intentId"]
    r = s.post(
        f"{BASE}/api/checkout/confirm",
        json={"intentId": intent_id},
        headers=headers,
        timeout=20,
    )
    r.raise_for_status()
    print("intent", intent_id, "status", r.json()["status"])
    return headers, intent_id


def finalize_task(i, headers, intent_id):
    try:
        r = requests.post(
            f"{BASE}/api/checkout/finalize",
            json={"intentId": intent_id},
            headers=headers,
            timeout=30,
        )
        return (i, r.status_code, r.json())
    except (requests.RequestException, ValueError) as e:
        return (i, "ERR", str(e))


def summarize(results):
    orders = set()
    for i, code, body in results:
        print(i, code, body if code != 200 else {"duplicate": body.get("duplicate")})
        if code == 200:
            orders.add(body["order"]["orderNumber"])
    print("Distinct orders:", orders)


def run_same_intent(workers, product_id, qty):
    print(f"Finalizing one intent {workers} times at once (product={product_id}, qty={qty})")
    headers, intent_id = paid_intent(product_id, qty)
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(finalize_task, i, headers, intent_id) for i in range(workers)]
        summarize([f.result() for f in futures])


def run_last_unit(workers, product_id, qty):
    print(f"{workers} shoppers racing for product={product_id}")
    shoppers = [paid_intent(product_id, qty) for _ in range(workers)]
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [
            ex.submit(finalize_task, i, headers, intent_id)
            for i, (headers, intent_id) in enumerate(shoppers)
        ]
        summarize([f.result() for f in futures])


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency test tool for checkout finalization.")
    sub = parser.add_subparsers(dest="mode", required=True)

    for name in ("same-intent", "last-unit"):
        p = sub.add_parser(name)
        p.add_argument("--product", type=int, default=1)
        p.add_argument("--qty", type=int, default=1)
        p.add_argument("--workers", type=int, default=8)

    args = parser.parse_args()

    if args.mode == "same-intent":
        run_same_intent(args.workers, args.product, args.qty)
    else:
        run_last_unit(args.workers, args.product, args.qty)
