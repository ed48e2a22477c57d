"""
Catalog management routes.

Endpoints:
  GET/POST          /api/categories
  GET/PATCH/DELETE  /api/categories/{id}
  GET/POST          /api/subcategories
  GET/PATCH/DELETE  /api/subcategories/{id}
  GET/POST          /api/products
  GET/PATCH/DELETE  /api/products/{id}
  POST              /api/products/{id}/restock
  GET/POST          /api/products/{id}/attributes
  PATCH/DELETE      /api/attributes/{id}
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlmodel import Session

from backoffice.core.database import get_session
from backoffice.core.security import get_current_actor
from backoffice.schemas.responses import (
    CategoryRead,
    Envelope,
    ProductDetail,
    ProductRead,
    SubCategoryRead,
    VariantRead,
)
from backoffice.services import catalog

catalog_router = APIRouter(prefix="/api", tags=["catalog"], dependencies=[Depends(get_current_actor)])

# ── Request bodies ────────────────────────────────────────────────────────────


class CategoryIn(BaseModel):
    name: str
    description: Optional[str] = None


class CategoryPatch(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class SubCategoryIn(BaseModel):
    category_id: int
    name: str
    description: Optional[str] = None


class SubCategoryPatch(BaseModel):
    category_id: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ProductIn(BaseModel):
    category_id: int
    subcategory_id: int
    name: str
    sku: str
    price: Decimal
    description: Optional[str] = None
    hsn: Optional[str] = None
    gst_rate: Decimal = Decimal("0")
    actual_price: Optional[Decimal] = None
    stock: int = 0
    unit: Optional[str] = None


class ProductPatch(BaseModel):
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[Decimal] = None
    description: Optional[str] = None
    hsn: Optional[str] = None
    gst_rate: Optional[Decimal] = None
    actual_price: Optional[Decimal] = None
    stock: Optional[int] = None
    unit: Optional[str] = None
    is_active: Optional[bool] = None


class RestockIn(BaseModel):
    quantity: int
    attribute_id: Optional[int] = None


class VariantIn(BaseModel):
    attribute_name: str
    attribute_value: str
    price: Decimal
    sku: str
    actual_price: Optional[Decimal] = None
    stock: int = 0


class VariantPatch(BaseModel):
    attribute_name: Optional[str] = None
    attribute_value: Optional[str] = None
    price: Optional[Decimal] = None
    sku: Optional[str] = None
    actual_price: Optional[Decimal] = None
    stock: Optional[int] = None
    is_active: Optional[bool] = None


class Deleted(BaseModel):
    id: int
    deleted: bool = True


# ── Categories ────────────────────────────────────────────────────────────────


@catalog_router.get("/categories", response_model=Envelope[list[CategoryRead]])
def list_categories(
    is_active: Optional[bool] = Query(default=None),
    session: Session = Depends(get_session),
):
    rows = catalog.list_categories(session, is_active=is_active)
    return Envelope(data=[CategoryRead.model_validate(c) for c in rows])


@catalog_router.post("/categories", response_model=Envelope[CategoryRead], status_code=status.HTTP_201_CREATED)
def create_category(body: CategoryIn, session: Session = Depends(get_session)):
    category = catalog.create_category(session, body.name, body.description)
    return Envelope(data=CategoryRead.model_validate(category))


@catalog_router.get("/categories/{category_id}", response_model=Envelope[CategoryRead])
def get_category(category_id: int, session: Session = Depends(get_session)):
    return Envelope(data=CategoryRead.model_validate(catalog.get_category(session, category_id)))


@catalog_router.patch("/categories/{category_id}", response_model=Envelope[CategoryRead])
def update_category(category_id: int, body: CategoryPatch, session: Session = Depends(get_session)):
    category = catalog.update_category(session, category_id, **body.model_dump(exclude_unset=True))
    return Envelope(data=CategoryRead.model_validate(category))


@catalog_router.delete("/categories/{category_id}", response_model=Envelope[Deleted])
def delete_category(category_id: int, session: Session = Depends(get_session)):
    catalog.delete_category(session, category_id)
    return Envelope(data=Deleted(id=category_id))


# ── Subcategories ─────────────────────────────────────────────────────────────


@catalog_router.get("/subcategories", response_model=Envelope[list[SubCategoryRead]])
def list_subcategories(
    category_id: Optional[int] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    session: Session = Depends(get_session),
):
    rows = catalog.list_subcategories(session, category_id=category_id, is_active=is_active)
    return Envelope(data=[SubCategoryRead.model_validate(s) for s in rows])


@catalog_router.post(
    "/subcategories", response_model=Envelope[SubCategoryRead], status_code=status.HTTP_201_CREATED
)
def create_subcategory(body: SubCategoryIn, session: Session = Depends(get_session)):
    subcategory = catalog.create_subcategory(session, body.category_id, body.name, body.description)
    return Envelope(data=SubCategoryRead.model_validate(subcategory))


@catalog_router.get("/subcategories/{subcategory_id}", response_model=Envelope[SubCategoryRead])
def get_subcategory(subcategory_id: int, session: Session = Depends(get_session)):
    return Envelope(data=SubCategoryRead.model_validate(catalog.get_subcategory(session, subcategory_id)))


@catalog_router.patch("/subcategories/{subcategory_id}", response_model=Envelope[SubCategoryRead])
def update_subcategory(subcategory_id: int, body: SubCategoryPatch, session: Session = Depends(get_session)):
    subcategory = catalog.update_subcategory(session, subcategory_id, **body.model_dump(exclude_unset=True))
    return Envelope(data=SubCategoryRead.model_validate(subcategory))


@catalog_router.delete("/subcategories/{subcategory_id}", response_model=Envelope[Deleted])
def delete_subcategory(subcategory_id: int, session: Session = Depends(get_session)):
    catalog.delete_subcategory(session, subcategory_id)
    return Envelope(data=Deleted(id=subcategory_id))


# ── Products ──────────────────────────────────────────────────────────────────


@catalog_router.get("/products", response_model=Envelope[list[ProductRead]])
def list_products(
    category_id: Optional[int] = Query(default=None),
    subcategory_id: Optional[int] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Name or SKU substring"),
    session: Session = Depends(get_session),
):
    rows = catalog.list_products(
        session,
        category_id=category_id,
        subcategory_id=subcategory_id,
        is_active=is_active,
        search=search,
    )
    return Envelope(data=[ProductRead.model_validate(p) for p in rows])


@catalog_router.post("/products", response_model=Envelope[ProductRead], status_code=status.HTTP_201_CREATED)
def create_product(body: ProductIn, session: Session = Depends(get_session)):
    product = catalog.create_product(session, **body.model_dump())
    return Envelope(data=ProductRead.model_validate(product))


@catalog_router.get("/products/{product_id}", response_model=Envelope[ProductDetail])
def get_product(product_id: int, session: Session = Depends(get_session)):
    product = catalog.get_product(session, product_id)
    variants = catalog.list_variants(session, product_id)
    detail = ProductDetail(
        **ProductRead.model_validate(product).model_dump(exclude={"discount_percentage"}),
        attributes=[VariantRead.model_validate(v) for v in variants],
    )
    return Envelope(data=detail)


@catalog_router.patch("/products/{product_id}", response_model=Envelope[ProductRead])
def update_product(product_id: int, body: ProductPatch, session: Session = Depends(get_session)):
    product = catalog.update_product(session, product_id, **body.model_dump(exclude_unset=True))
    return Envelope(data=ProductRead.model_validate(product))


@catalog_router.delete("/products/{product_id}", response_model=Envelope[Deleted])
def delete_product(product_id: int, session: Session = Depends(get_session)):
    catalog.delete_product(session, product_id)
    return Envelope(data=Deleted(id=product_id))


@catalog_router.post("/products/{product_id}/restock", response_model=Envelope[ProductDetail])
def restock_product(product_id: int, body: RestockIn, session: Session = Depends(get_session)):
    catalog.restock(session, product_id, body.quantity, attribute_id=body.attribute_id)
    return get_product(product_id, session)


# ── Variants ──────────────────────────────────────────────────────────────────


@catalog_router.get("/products/{product_id}/attributes", response_model=Envelope[list[VariantRead]])
def list_variants(product_id: int, session: Session = Depends(get_session)):
    rows = catalog.list_variants(session, product_id)
    return Envelope(data=[VariantRead.model_validate(v) for v in rows])


@catalog_router.post(
    "/products/{product_id}/attributes",
    response_model=Envelope[VariantRead],
    status_code=status.HTTP_201_CREATED,
)
def create_variant(product_id: int, body: VariantIn, session: Session = Depends(get_session)):
    variant = catalog.create_variant(session, product_id, **body.model_dump())
    return Envelope(data=VariantRead.model_validate(variant))


@catalog_router.patch("/attributes/{attribute_id}", response_model=Envelope[VariantRead])
def update_variant(attribute_id: int, body: VariantPatch, session: Session = Depends(get_session)):
    variant = catalog.update_variant(session, attribute_id, **body.model_dump(exclude_unset=True))
    return Envelope(data=VariantRead.model_validate(variant))


@catalog_router.delete("/attributes/{attribute_id}", response_model=Envelope[Deleted])
def delete_variant(attribute_id: int, session: Session = Depends(get_session)):
    catalog.delete_variant(session, attribute_id)
    return Envelope(data=Deleted(id=attribute_id))
