#!/usr/bin/env python3
"""
Seed categories and products from a JSON file (scripts/catalogue.json by default).

Accepts either a list of product entries or an object with ``categories`` and
``products`` lists. Prices are decimal strings in the base currency.

Usage:
    python scripts/seed_products.py --file scripts/catalogue.json
"""
import argparse
import json
import os
import sys
from decimal import Decimal, InvalidOperation

# allow running from backend/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db  # noqa: E402
from storefront.repositories.product_repo import ProductRepository  # noqa: E402
from storefront.utils.logging import configure_logging, get_logger  # noqa: E402

log = get_logger("seed_products")

DEFAULT_SOURCE = os.path.join(os.path.dirname(__file__), "catalogue.json")


def _slugify(text: str) -> str:
    return "-".join("".join(c if c.isalnum() else " " for c in text.lower()).split())


def _decimal(value, default="0.00"):
    if value is None or value == "":
        return None if default is None else Decimal(default)
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        log.warning("unparseable price %r, using %s", value, default)
        return None if default is None else Decimal(default)


def _normalize_entry(entry):
    name = entry.get("name") or entry.get("title") or ""
    slug = entry.get("slug") or _slugify(name)
    try:
        inventory = int(entry.get("inventory", entry.get("stock", 0)) or 0)
    except (TypeError, ValueError):
        inventory = 0
    image = entry.get("image_url") or entry.get("imageUrl") or entry.get("image")
    return {
        "slug": slug,
        "name": name,
        "price": _decimal(entry.get("price")),
        "sale_price": _decimal(entry.get("sale_price", entry.get("salePrice")), default=None),
        "inventory": max(inventory, 0),
        "description": entry.get("description") or "",
        "image_url": image,
        "category": entry.get("category"),
    }


def load_source(path: str):
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Failed to parse JSON from {path}: {e}")

    if isinstance(data, list):
        return [], data
    if isinstance(data, dict):
        return data.get("categories") or [], data.get("products") or data.get("items") or []
    return [], []


def seed_from_file(path: str) -> int:
    categories, products = load_source(path)
    init_db()

    db = SessionLocal()
    repo = ProductRepository(db)
    created = 0
    try:
        by_slug = {}
        for c in categories:
            name = c.get("name") or c.get("slug")
            if not name:
                continue
            cat = repo.get_or_create_category(c.get("slug") or _slugify(name), name)
            by_slug[cat.slug] = cat

        for raw in products:
            entry = _normalize_entry(raw)
            if not entry["slug"] or not entry["name"]:
                log.warning("skipping entry without a name: %r", raw)
                continue
            category_id = None
            if entry["category"]:
                cat_slug = _slugify(entry["category"])
                cat = by_slug.get(cat_slug) or repo.get_or_create_category(
                    cat_slug, entry["category"]
                )
                by_slug[cat_slug] = cat
                category_id = cat.id
            repo.create_or_update(
                slug=entry["slug"],
                name=entry["name"],
                price=entry["price"],
                inventory=entry["inventory"],
                sale_price=entry["sale_price"],
                description=entry["description"],
                image_url=entry["image_url"],
                category_id=category_id,
            )
            created += 1

        db.commit()
        log.info("seeded %s products in %s categories", created, len(by_slug))
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    return created


if __name__ == "__main__":
    configure_logging()
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", default=DEFAULT_SOURCE, help="Path to catalogue json")
    args = parser.parse_args()
    if not os.path.exists(args.file):
        print("File not found:", args.file)
        sys.exit(1)
    seed_from_file(args.file)
