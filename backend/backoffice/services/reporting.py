"""
Dashboard aggregation over primary-ledger invoices.

Read-only. Only active invoices count; windows and the trend use the
store's local calendar (``settings.TIMEZONE``), weeks start on Monday.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from dateutil.relativedelta import MO, relativedelta
from sqlmodel import Session, func, select

from backoffice.core.clock import local_now, store_tz, to_local, to_utc
from backoffice.core.config import settings
from backoffice.models.billing import Invoice, InvoiceLine, InvoiceStatus
from backoffice.models.catalog import Category, Product, ProductAttribute, SubCategory
from backoffice.services.pricing import ZERO, quantize


@dataclass
class WindowStats:
    invoice_count: int = 0
    revenue: Decimal = ZERO
    gst: Decimal = ZERO


@dataclass
class RevenueShare:
    name: str
    revenue: Decimal
    quantity: int


@dataclass
class TopProduct:
    product_id: int
    product_name: str
    quantity: int
    revenue: Decimal


@dataclass
class PaymentModeShare:
    payment_mode: str
    invoice_count: int
    revenue: Decimal


@dataclass
class TrendPoint:
    day: date
    invoice_count: int
    revenue: Decimal


@dataclass
class LowStockItem:
    product_id: int
    product_name: str
    sku: str
    stock: int
    attribute_id: Optional[int] = None
    attribute: Optional[str] = None


@dataclass
class Dashboard:
    generated_at: datetime
    today: WindowStats
    this_week: WindowStats
    this_month: WindowStats
    all_time: WindowStats
    categories: list[RevenueShare] = field(default_factory=list)
    subcategories: list[RevenueShare] = field(default_factory=list)
    top_products: list[TopProduct] = field(default_factory=list)
    payment_modes: list[PaymentModeShare] = field(default_factory=list)
    trend: list[TrendPoint] = field(default_factory=list)
    low_stock: list[LowStockItem] = field(default_factory=list)


_ACTIVE = Invoice.status == InvoiceStatus.ACTIVE.value


def _money(value) -> Decimal:
    return quantize(value if value is not None else ZERO)


def _day_start(day: date) -> datetime:
    """Local midnight of ``day`` as UTC."""
    return to_utc(datetime.combine(day, time.min, tzinfo=store_tz()))


def _window(session: Session, since: Optional[datetime]) -> WindowStats:
    stmt = select(func.count(Invoice.id), func.sum(Invoice.grand_total), func.sum(Invoice.total_gst)).where(_ACTIVE)
    if since is not None:
        stmt = stmt.where(Invoice.created_at >= since)
    count, revenue, gst = session.exec(stmt).one()
    return WindowStats(invoice_count=count or 0, revenue=_money(revenue), gst=_money(gst))


def _revenue_by(session: Session, model, join_column) -> list[RevenueShare]:
    rows = session.exec(
        select(model.name, func.sum(InvoiceLine.total), func.sum(InvoiceLine.quantity))
        .select_from(InvoiceLine)
        .join(Invoice, InvoiceLine.invoice_id == Invoice.id)
        .join(Product, InvoiceLine.product_id == Product.id)
        .join(model, join_column == model.id)
        .where(_ACTIVE)
        .group_by(model.id, model.name)
        .order_by(func.sum(InvoiceLine.total).desc())
    ).all()
    return [RevenueShare(name=name, revenue=_money(revenue), quantity=int(qty or 0)) for name, revenue, qty in rows]


def _top_products(session: Session, limit: int) -> list[TopProduct]:
    qty = func.sum(InvoiceLine.quantity)
    rows = session.exec(
        select(InvoiceLine.product_id, func.max(InvoiceLine.product_name), qty, func.sum(InvoiceLine.total))
        .join(Invoice, InvoiceLine.invoice_id == Invoice.id)
        .where(_ACTIVE)
        .group_by(InvoiceLine.product_id)
        .order_by(qty.desc(), InvoiceLine.product_id)
        .limit(limit)
    ).all()
    return [
        TopProduct(product_id=pid, product_name=name, quantity=int(q or 0), revenue=_money(revenue))
        for pid, name, q, revenue in rows
    ]


def _payment_modes(session: Session) -> list[PaymentModeShare]:
    rows = session.exec(
        select(Invoice.payment_mode, func.count(Invoice.id), func.sum(Invoice.grand_total))
        .where(_ACTIVE)
        .group_by(Invoice.payment_mode)
        .order_by(Invoice.payment_mode)
    ).all()
    return [PaymentModeShare(payment_mode=mode, invoice_count=n, revenue=_money(total)) for mode, n, total in rows]


def _trend(session: Session, today: date, days: int) -> list[TrendPoint]:
    first = today - relativedelta(days=days - 1)
    buckets = {first + relativedelta(days=i): [0, ZERO] for i in range(days)}
    rows = session.exec(
        select(Invoice.created_at, Invoice.grand_total).where(_ACTIVE, Invoice.created_at >= _day_start(first))
    ).all()
    for created_at, total in rows:
        bucket = buckets.get(to_local(created_at).date())
        if bucket is not None:
            bucket[0] += 1
            bucket[1] += total
    return [TrendPoint(day=d, invoice_count=n, revenue=_money(r)) for d, (n, r) in sorted(buckets.items())]


def _low_stock(session: Session, threshold: int) -> list[LowStockItem]:
    items = [
        LowStockItem(product_id=p.id, product_name=p.name, sku=p.sku, stock=p.stock)
        for p in session.exec(
            select(Product)
            .where(Product.is_active == True, Product.stock < threshold)  # noqa: E712
            .order_by(Product.stock, Product.id)
        ).all()
    ]
    variants = session.exec(
        select(ProductAttribute, Product.name)
        .join(Product, ProductAttribute.product_id == Product.id)
        .where(
            ProductAttribute.is_active == True,  # noqa: E712
            Product.is_active == True,  # noqa: E712
            ProductAttribute.stock < threshold,
        )
        .order_by(ProductAttribute.stock, ProductAttribute.id)
    ).all()
    for variant, product_name in variants:
        items.append(
            LowStockItem(
                product_id=variant.product_id,
                product_name=product_name,
                sku=variant.sku,
                stock=variant.stock,
                attribute_id=variant.id,
                attribute=f"{variant.attribute_name}: {variant.attribute_value}",
            )
        )
    return sorted(items, key=lambda i: (i.stock, i.product_id, i.attribute_id or 0))


def dashboard(session: Session, now: Optional[datetime] = None) -> Dashboard:
    local = local_now(now)
    today = local.date()
    week_start = today + relativedelta(weekday=MO(-1))
    month_start = today.replace(day=1)

    return Dashboard(
        generated_at=local,
        today=_window(session, _day_start(today)),
        this_week=_window(session, _day_start(week_start)),
        this_month=_window(session, _day_start(month_start)),
        all_time=_window(session, None),
        categories=_revenue_by(session, Category, Product.category_id),
        subcategories=_revenue_by(session, SubCategory, Product.subcategory_id),
        top_products=_top_products(session, settings.DASHBOARD_TOP_N),
        payment_modes=_payment_modes(session),
        trend=_trend(session, today, settings.DASHBOARD_TREND_DAYS),
        low_stock=_low_stock(session, settings.LOW_STOCK_THRESHOLD),
    )
