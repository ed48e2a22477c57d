"""SQLModel models for the product catalog (categories, subcategories, products, variants)."""
from decimal import Decimal
from typing import Optional
from datetime import datetime
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from backoffice.core.clock import utc_now


class Category(SQLModel, table=True):
    """Top-level business category; a cart never mixes two of these."""

    __tablename__ = "categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True, max_length=100)
    description: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class SubCategory(SQLModel, table=True):
    """Second catalog level. Name is unique within its category."""

    __tablename__ = "subcategories"
    __table_args__ = (UniqueConstraint("category_id", "name", name="uq_subcategory_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    category_id: int = Field(foreign_key="categories.id", index=True)
    name: str = Field(max_length=100)
    description: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Product(SQLModel, table=True):
    """
    Sellable item. Stock is only changed by billing (decrement) and by the
    restock / update operations of the catalog.
    """

    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    category_id: int = Field(foreign_key="categories.id", index=True)
    subcategory_id: int = Field(foreign_key="subcategories.id", index=True)
    name: str = Field(index=True, max_length=200)
    description: Optional[str] = None
    sku: str = Field(index=True, unique=True, max_length=50)
    hsn: Optional[str] = Field(default=None, max_length=8)
    unit: str = Field(default="piece", max_length=20)

    price: Decimal = Field(max_digits=12, decimal_places=2)
    actual_price: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    gst_rate: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    stock: int = Field(default=0)

    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProductAttribute(SQLModel, table=True):
    """
    A product variant such as "Weight: 20g".
    Price and stock override the parent product; GST rate does not.
    """

    __tablename__ = "product_attributes"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    attribute_name: str = Field(max_length=100)   # Weight, Volume, Size, Pack …
    attribute_value: str = Field(max_length=50)   # 20g, 30ml, Small, 6-pack …

    price: Decimal = Field(max_digits=12, decimal_places=2)
    actual_price: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    stock: int = Field(default=0)
    sku: str = Field(index=True, unique=True, max_length=50)

    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
