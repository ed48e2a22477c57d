"""Pydantic response schemas for API endpoints."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, computed_field

from backoffice.services.pricing import discount_percentage

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Every successful response: ``{"ok": true, "data": ...}``."""

    ok: bool = True
    data: T


class ErrorResponse(BaseModel):
    ok: bool = False
    error_kind: str
    message: str
    details: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str
    db: str
    version: str = "1.0.0"
    timezone: str


# ── Catalog ───────────────────────────────────────────────────────────────────


class CategoryRead(BaseModel):
    id: int
    name: str
    description: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SubCategoryRead(BaseModel):
    id: int
    category_id: int
    name: str
    description: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VariantRead(BaseModel):
    id: int
    product_id: int
    attribute_name: str
    attribute_value: str
    price: Decimal
    actual_price: Optional[Decimal]
    stock: int
    sku: str
    is_active: bool

    class Config:
        from_attributes = True

    @computed_field
    @property
    def discount_percentage(self) -> Optional[Decimal]:
        return discount_percentage(self.price, self.actual_price)


class ProductRead(BaseModel):
    id: int
    category_id: int
    subcategory_id: int
    name: str
    description: Optional[str]
    sku: str
    hsn: Optional[str]
    unit: str
    price: Decimal
    actual_price: Optional[Decimal]
    gst_rate: Decimal
    stock: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @computed_field
    @property
    def discount_percentage(self) -> Optional[Decimal]:
        return discount_percentage(self.price, self.actual_price)


class ProductDetail(ProductRead):
    attributes: list[VariantRead] = []


# ── Cart ──────────────────────────────────────────────────────────────────────


class CartItemRead(BaseModel):
    id: int
    product_id: int
    attribute_id: Optional[int]
    quantity: int
    product_name: str
    sku: str
    unit: str
    category: str
    attribute_name: Optional[str]
    attribute_value: Optional[str]
    available_stock: int
    unit_price: Decimal
    gst_rate: Decimal
    subtotal: Decimal
    gst: Decimal
    cgst: Decimal
    sgst: Decimal
    total: Decimal

    @classmethod
    def from_item(cls, item) -> "CartItemRead":
        variant = item.variant
        return cls(
            id=item.line.id,
            product_id=item.product.id,
            attribute_id=item.line.attribute_id,
            quantity=item.line.quantity,
            product_name=item.product.name,
            sku=variant.sku if variant else item.product.sku,
            unit=item.product.unit,
            category=item.category.name,
            attribute_name=variant.attribute_name if variant else None,
            attribute_value=variant.attribute_value if variant else None,
            available_stock=item.available_stock,
            unit_price=item.unit_price,
            gst_rate=item.gst_rate,
            subtotal=item.amounts.subtotal,
            gst=item.amounts.gst,
            cgst=item.amounts.cgst,
            sgst=item.amounts.sgst,
            total=item.amounts.total,
        )


class CartRead(BaseModel):
    items: list[CartItemRead]
    count: int
    category: Optional[str]
    total_items: int
    subtotal: Decimal
    total_gst: Decimal
    grand_total: Decimal

    @classmethod
    def from_view(cls, view) -> "CartRead":
        return cls(
            items=[CartItemRead.from_item(i) for i in view.items],
            count=len(view.items),
            category=view.category.name if view.category else None,
            total_items=view.total_items,
            subtotal=view.subtotal,
            total_gst=view.total_gst,
            grand_total=view.grand_total,
        )


# ── Invoices ──────────────────────────────────────────────────────────────────


class InvoiceLineRead(BaseModel):
    id: int
    product_id: int
    attribute_id: Optional[int]
    product_name: str
    product_sku: str
    attribute_name: Optional[str]
    attribute_value: Optional[str]
    unit: str
    unit_price: Decimal
    gst_rate: Decimal
    quantity: int
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    total_gst: Decimal
    total: Decimal
    order: int

    class Config:
        from_attributes = True


class InvoiceRead(BaseModel):
    id: int
    invoice_number: str
    customer_name: str
    customer_contact: str
    customer_address: Optional[str]
    payment_mode: str
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    total_gst: Decimal
    grand_total: Decimal
    status: str
    created_by: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetailRead(InvoiceRead):
    lines: list[InvoiceLineRead] = []

    @classmethod
    def from_detail(cls, detail) -> "InvoiceDetailRead":
        base = InvoiceRead.model_validate(detail.invoice).model_dump()
        return cls(**base, lines=[InvoiceLineRead.model_validate(l) for l in detail.lines])


class InvoiceSummaryRead(BaseModel):
    count: int
    total_amount: Decimal
    total_cgst: Decimal
    total_sgst: Decimal
    total_gst: Decimal

    class Config:
        from_attributes = True


class InvoiceListRead(BaseModel):
    items: list[InvoiceRead]
    summary: InvoiceSummaryRead


# ── SL ledger ─────────────────────────────────────────────────────────────────


class SLCartLineRead(BaseModel):
    id: int
    category: str
    product_name: str
    product_price: Decimal
    quantity: int
    gst_rate: Decimal
    subtotal: Decimal
    gst_amount: Decimal
    total: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SLCartRead(BaseModel):
    items: list[SLCartLineRead]
    count: int
    category: Optional[str]
    subtotal: Decimal
    total_gst: Decimal
    grand_total: Decimal

    @classmethod
    def from_view(cls, view) -> "SLCartRead":
        return cls(
            items=[SLCartLineRead.model_validate(i) for i in view.items],
            count=len(view.items),
            category=view.category,
            subtotal=view.subtotal,
            total_gst=view.total_gst,
            grand_total=view.grand_total,
        )


class SLInvoiceLineRead(BaseModel):
    id: int
    product_name: str
    product_price: Decimal
    quantity: int
    gst_rate: Decimal
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    total_gst: Decimal
    total: Decimal
    order: int

    class Config:
        from_attributes = True


class SLInvoiceRead(BaseModel):
    id: int
    invoice_number: str
    category: str
    bill_to_name: str
    bill_to_address: str
    bill_to_mobile: str
    ship_to_name: str
    ship_to_address: str
    ship_to_mobile: str
    payment_mode: str
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    total_gst: Decimal
    grand_total: Decimal
    status: str
    created_by: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SLInvoiceDetailRead(SLInvoiceRead):
    lines: list[SLInvoiceLineRead] = []

    @classmethod
    def from_detail(cls, detail) -> "SLInvoiceDetailRead":
        base = SLInvoiceRead.model_validate(detail.invoice).model_dump()
        return cls(**base, lines=[SLInvoiceLineRead.model_validate(l) for l in detail.lines])


class SLInvoiceListRead(BaseModel):
    items: list[SLInvoiceRead]
    summary: InvoiceSummaryRead


# ── Dashboard ─────────────────────────────────────────────────────────────────


class WindowStatsRead(BaseModel):
    invoice_count: int
    revenue: Decimal
    gst: Decimal

    class Config:
        from_attributes = True


class RevenueShareRead(BaseModel):
    name: str
    revenue: Decimal
    quantity: int

    class Config:
        from_attributes = True


class TopProductRead(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    revenue: Decimal

    class Config:
        from_attributes = True


class PaymentModeShareRead(BaseModel):
    payment_mode: str
    invoice_count: int
    revenue: Decimal

    class Config:
        from_attributes = True


class TrendPointRead(BaseModel):
    day: date
    invoice_count: int
    revenue: Decimal

    class Config:
        from_attributes = True


class LowStockItemRead(BaseModel):
    product_id: int
    product_name: str
    sku: str
    stock: int
    attribute_id: Optional[int]
    attribute: Optional[str]

    class Config:
        from_attributes = True


class DashboardRead(BaseModel):
    generated_at: datetime
    today: WindowStatsRead
    this_week: WindowStatsRead
    this_month: WindowStatsRead
    all_time: WindowStatsRead
    categories: list[RevenueShareRead]
    subcategories: list[RevenueShareRead]
    top_products: list[TopProductRead]
    payment_modes: list[PaymentModeShareRead]
    trend: list[TrendPointRead]
    low_stock: list[LowStockItemRead]

    class Config:
        from_attributes = True


class StoreProfileRead(BaseModel):
    id: int
    store_type: str
    store_name: str
    owner_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    alternate_phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    gst_number: Optional[str] = None
    pan_number: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    branch_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
