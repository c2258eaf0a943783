from types import SimpleNamespace

import pytest

from storefront.models.product import Product
from storefront.services.errors import (
    InsufficientInventory,
    InvalidQuantity,
    InventoryChanged,
    ProductNotFound,
)
from storefront.services.inventory_service import InventoryService
from storefront.utils.transactions import transaction


def _line(pid, qty):
    return SimpleNamespace(product_id=pid, quantity=qty)


def test_reserve_checks_cumulative_quantity(db, make_product):
    pid = make_product(inventory=3)
    svc = InventoryService(db)
    assert svc.reserve(pid, 3) == 3
    with pytest.raises(InsufficientInventory) as exc:
        svc.reserve(pid, 4)
    assert exc.value.details["available"] == 3
    # nothing is held
    assert db.get(Product, pid).inventory == 3


def test_reserve_rejects_bad_input(db, make_product):
    pid = make_product()
    svc = InventoryService(db)
    with pytest.raises(InvalidQuantity):
        svc.reserve(pid, 0)
    with pytest.raises(ProductNotFound):
        svc.reserve(9999, 1)


def test_decrement_all_or_nothing(db, make_product):
    p1 = make_product(inventory=5)
    p2 = make_product(inventory=1)
    svc = InventoryService(db)

    with pytest.raises(InventoryChanged) as exc:
        with transaction(db, "test"):
            svc.decrement([_line(p1, 2), _line(p2, 2)])
    assert exc.value.details == {"product_id": p2, "available": 1}

    db.expire_all()
    assert db.get(Product, p1).inventory == 5
    assert db.get(Product, p2).inventory == 1

    with transaction(db, "test"):
        svc.decrement([_line(p1, 2), _line(p2, 1)])
    db.expire_all()
    assert db.get(Product, p1).inventory == 3
    assert db.get(Product, p2).inventory == 0


def test_check_lines_reports_available(db, make_product):
    pid = make_product(inventory=1)
    svc = InventoryService(db)
    products = svc.products.get_many([pid], fresh=True)
    svc.check_lines([_line(pid, 1)], products)
    with pytest.raises(InventoryChanged) as exc:
        svc.check_lines([_line(pid, 2)], products)
    assert exc.value.details["available"] == 1
