from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.currency_schema import CurrencyOut
from storefront.schemas.product_schema import CategoryOut, ProductOut
from storefront.services.currency_service import list_currencies
from storefront.services.errors import ProductNotFound

router = APIRouter(tags=["catalogue"])


@router.get("/products", summary="List products")
def list_products(
    q: Optional[str] = Query(None, description="search term"),
    category: Optional[str] = Query(None, description="category slug"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    repo = ProductRepository(db)
    items, total = repo.list(q=q, category=category, page=page, size=size)
    return {
        "items": [ProductOut.from_product(p).model_dump(by_alias=True, mode="json") for p in items],
        "total": total,
        "page": page,
        "size": size,
    }


@router.get("/products/{product_id}", summary="Get product", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    p = ProductRepository(db).get(product_id)
    if not p:
        raise ProductNotFound(product_id=product_id)
    return ProductOut.from_product(p)


@router.get("/categories", summary="List categories", response_model=List[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return [CategoryOut.model_validate(c) for c in ProductRepository(db).list_categories()]


@router.get("/currencies", summary="Supported display currencies", response_model=List[CurrencyOut])
def currencies():
    return [CurrencyOut.model_validate(c) for c in list_currencies()]
