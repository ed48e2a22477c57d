"""
Billing engine: turns an admin's cart into a numbered, immutable invoice.

``create_invoice`` is a single transaction:

  1. validate customer details and payment mode
  2. lock the actor, then its cart lines (EmptyCart if there are none)
  3. lock the product / variant rows in id order, re-check activity and stock
  4. price every line from the live catalog, in full precision
  5. aggregate, then round once for the header
  6. reserve the next invoice number of the day
  7. insert header + snapshot lines
  8. compare-and-swap decrement stock for every line
  9. empty the cart
 10. commit

Any exception before the commit rolls all of it back: no number is consumed,
stock and cart are untouched.
"""
from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional, Union

from dateutil.relativedelta import relativedelta
from loguru import logger
from sqlmodel import Session, col, func, or_, select

from backoffice.core.clock import as_utc, store_tz, to_local, to_utc, utc_now
from backoffice.core.config import settings
from backoffice.core.database import atomic
from backoffice.core.errors import (
    BackofficeError,
    Conflict,
    EmptyCart,
    InsufficientStock,
    InvalidInput,
    NotFound,
    Unavailable,
)
from backoffice.models.billing import Invoice, InvoiceLine, InvoiceStatus, PaymentMode
from backoffice.models.cart import CartLine
from backoffice.models.catalog import Product, ProductAttribute
from backoffice.services import catalog
from backoffice.services.cart import lock_actor
from backoffice.services.pricing import ZERO, line_amounts, quantize, sum_amounts
from backoffice.services.sequence import PRIMARY_NUMBERING, next_invoice_number

_CONTACT_RE = re.compile(r"^[0-9+\- ]{7,15}$")

SORTABLE_FIELDS = ("created_at", "invoice_number", "grand_total", "customer_name")


@dataclass(frozen=True)
class Customer:
    name: str
    contact: str
    address: Optional[str] = None


@dataclass
class InvoiceDetail:
    invoice: Invoice
    lines: list[InvoiceLine]


@dataclass
class InvoiceSummary:
    count: int = 0
    total_amount: Decimal = ZERO
    total_cgst: Decimal = ZERO
    total_sgst: Decimal = ZERO
    total_gst: Decimal = ZERO


@dataclass
class InvoiceList:
    invoices: list[Any]
    summary: InvoiceSummary = field(default_factory=InvoiceSummary)


# ── Shared validation / state helpers (also used by the SL ledger) ────────────


def require_text(value: Any, field_name: str, max_len: int, message: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(message, {"field": field_name})
    value = str(value).strip()
    if len(value) > max_len:
        raise InvalidInput(f"{field_name} must not exceed {max_len} characters", {"field": field_name})
    return value


def validate_contact(value: Any, field_name: str, message: str) -> str:
    value = require_text(value, field_name, 15, message)
    if not _CONTACT_RE.match(value):
        raise InvalidInput(
            f"{field_name} must be 7 to 15 digits (spaces, '+' and '-' allowed)",
            {"field": field_name},
        )
    return value


def parse_payment_mode(value: Any) -> PaymentMode:
    try:
        return PaymentMode(value if value is not None else PaymentMode.CASH.value)
    except ValueError:
        raise InvalidInput(
            "Invalid payment mode",
            {"field": "payment_mode", "allowed": [m.value for m in PaymentMode]},
        )


def transition_status(invoice: Any, target: InvoiceStatus, label: str = "Bill") -> None:
    """Move an invoice to ``target``; moving to the current status is a Conflict."""
    current = InvoiceStatus(invoice.status)
    if current == target:
        raise Conflict(
            f"{label} is already {target.value}",
            {"invoice_number": invoice.invoice_number, "status": current.value},
        )
    invoice.status = target.value
    invoice.updated_at = utc_now()


def parse_status(value: Optional[str]) -> Optional[InvoiceStatus]:
    if value is None:
        return None
    try:
        return InvoiceStatus(value)
    except ValueError:
        raise InvalidInput(
            "Invalid status filter",
            {"field": "status", "allowed": [s.value for s in InvoiceStatus]},
        )


def date_window(date_from: Optional[date], date_to: Optional[date]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Local calendar dates → UTC [start, end) bounds."""
    zone = store_tz()
    start = to_utc(datetime.combine(date_from, time.min, tzinfo=zone)) if date_from else None
    end = None
    if date_to:
        end = to_utc(datetime.combine(date_to + relativedelta(days=1), time.min, tzinfo=zone))
    if start and end and start >= end:
        raise InvalidInput("date_from must not be after date_to", {"field": "date_from"})
    return start, end


def order_clause(model: Any, sort_by: str, sort_order: str, sortable: tuple[str, ...] = SORTABLE_FIELDS):
    if sort_by not in sortable:
        raise InvalidInput(f"Cannot sort by {sort_by!r}", {"field": "sort_by", "allowed": list(sortable)})
    if sort_order not in ("asc", "desc"):
        raise InvalidInput("sort_order must be 'asc' or 'desc'", {"field": "sort_order"})
    column = col(getattr(model, sort_by))
    tie = col(model.id)
    return (column.asc(), tie.asc()) if sort_order == "asc" else (column.desc(), tie.desc())


def summarize(invoices: list[Any]) -> InvoiceSummary:
    summary = InvoiceSummary(count=len(invoices))
    for inv in invoices:
        summary.total_amount += inv.grand_total
        summary.total_cgst += inv.cgst
        summary.total_sgst += inv.sgst
        summary.total_gst += inv.total_gst
    summary.total_amount = quantize(summary.total_amount)
    summary.total_cgst = quantize(summary.total_cgst)
    summary.total_sgst = quantize(summary.total_sgst)
    summary.total_gst = quantize(summary.total_gst)
    return summary


# ── Create ────────────────────────────────────────────────────────────────────


def _as_customer(customer: Union[Customer, dict]) -> Customer:
    if isinstance(customer, Customer):
        return customer
    return Customer(
        name=customer.get("name"),
        contact=customer.get("contact"),
        address=customer.get("address"),
    )


def _lock_rows(session: Session, model: Any, ids: set[int]) -> dict[int, Any]:
    if not ids:
        return {}
    rows = session.exec(
        select(model).where(col(model.id).in_(sorted(ids))).order_by(model.id).with_for_update()
    ).all()
    return {row.id: row for row in rows}


def create_invoice(
    session: Session,
    actor_id: int,
    customer: Union[Customer, dict],
    payment_mode: Any = PaymentMode.CASH,
    now: Optional[datetime] = None,
) -> InvoiceDetail:
    customer = _as_customer(customer)
    name = require_text(customer.name, "customer_name", 100, "Customer name is required")
    contact = validate_contact(customer.contact, "customer_contact", "Customer contact is required")
    address = (customer.address or "").strip() or None
    mode = parse_payment_mode(payment_mode)
    created_at = as_utc(now) if now else utc_now()

    try:
        with atomic(session):
            lock_actor(session, actor_id)
            cart_lines = session.exec(
                select(CartLine)
                .where(CartLine.admin_id == actor_id)
                .order_by(CartLine.id)
                .with_for_update()
            ).all()
            if not cart_lines:
                raise EmptyCart("Cart is empty. Add items to cart before creating a bill.")

            products = _lock_rows(session, Product, {cl.product_id for cl in cart_lines})
            variants = _lock_rows(
                session, ProductAttribute, {cl.attribute_id for cl in cart_lines if cl.attribute_id}
            )

            priced = []
            for cl in cart_lines:
                product = products.get(cl.product_id)
                if product is None:
                    raise NotFound("Product not found", {"product_id": cl.product_id})
                variant = variants.get(cl.attribute_id) if cl.attribute_id else None
                if cl.attribute_id and variant is None:
                    raise NotFound("Product attribute not found", {"attribute_id": cl.attribute_id})

                if not product.is_active or (variant is not None and not variant.is_active):
                    raise Unavailable(
                        f"Product \"{product.name}\" is no longer available",
                        {"product_id": product.id, "attribute_id": cl.attribute_id},
                    )
                available = variant.stock if variant is not None else product.stock
                if available < cl.quantity:
                    raise InsufficientStock(
                        f"Insufficient stock for \"{product.name}\". "
                        f"Available: {available}, Required: {cl.quantity}",
                        {
                            "product_id": product.id,
                            "attribute_id": cl.attribute_id,
                            "available": available,
                            "required": cl.quantity,
                        },
                    )

                unit_price = variant.price if variant is not None else product.price
                amounts = line_amounts(unit_price, cl.quantity, product.gst_rate, settings.PRIMARY_TAX_ENABLED)
                priced.append((cl, product, variant, unit_price, amounts))

            totals = sum_amounts(p[4] for p in priced).rounded()
            number = next_invoice_number(session, PRIMARY_NUMBERING, Invoice.invoice_number, created_at)

            invoice = Invoice(
                invoice_number=number,
                customer_name=name,
                customer_contact=contact,
                customer_address=address,
                payment_mode=mode.value,
                subtotal=totals.subtotal,
                cgst=totals.cgst,
                sgst=totals.sgst,
                total_gst=totals.gst,
                grand_total=totals.total,
                status=InvoiceStatus.ACTIVE.value,
                created_by=actor_id,
                created_at=created_at,
                updated_at=created_at,
            )
            session.add(invoice)
            session.flush()

            for position, (cl, product, variant, unit_price, amounts) in enumerate(priced, start=1):
                rounded = amounts.rounded()
                session.add(
                    InvoiceLine(
                        invoice_id=invoice.id,
                        product_id=product.id,
                        attribute_id=variant.id if variant is not None else None,
                        product_name=product.name,
                        product_sku=variant.sku if variant is not None else product.sku,
                        attribute_name=variant.attribute_name if variant is not None else None,
                        attribute_value=variant.attribute_value if variant is not None else None,
                        unit=product.unit,
                        unit_price=unit_price,
                        gst_rate=product.gst_rate,
                        quantity=cl.quantity,
                        subtotal=rounded.subtotal,
                        cgst=rounded.cgst,
                        sgst=rounded.sgst,
                        total_gst=rounded.gst,
                        total=rounded.total,
                        order=position,
                    )
                )

            for cl, product, variant, _, _ in priced:
                catalog.decrement_stock(session, product.id, cl.attribute_id, cl.quantity, label=product.name)

            for cl in cart_lines:
                session.delete(cl)
    except BackofficeError as exc:
        logger.warning(f"Admin {actor_id}: bill not created ({exc.kind}): {exc.message}")
        raise

    logger.info(
        f"Invoice {number} created by admin {actor_id}: {len(priced)} lines, "
        f"grand total {totals.total} ({mode.value})"
    )
    return get_invoice(session, invoice.id)


# ── Read ──────────────────────────────────────────────────────────────────────


def get_invoice(session: Session, invoice_id: int) -> InvoiceDetail:
    invoice = session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFound("Bill not found", {"invoice_id": invoice_id})
    lines = session.exec(
        select(InvoiceLine).where(InvoiceLine.invoice_id == invoice_id).order_by(InvoiceLine.order, InvoiceLine.id)
    ).all()
    return InvoiceDetail(invoice=invoice, lines=list(lines))


def _filtered(
    search: Optional[str],
    payment_mode: Optional[str],
    status: Optional[str],
    date_from: Optional[date],
    date_to: Optional[date],
):
    stmt = select(Invoice)
    if search:
        needle = search.strip().lower()
        stmt = stmt.where(
            or_(
                func.lower(Invoice.invoice_number).contains(needle, autoescape=True),
                func.lower(Invoice.customer_name).contains(needle, autoescape=True),
                func.lower(Invoice.customer_contact).contains(needle, autoescape=True),
            )
        )
    if payment_mode:
        stmt = stmt.where(Invoice.payment_mode == parse_payment_mode(payment_mode).value)
    wanted = parse_status(status)
    if wanted is not None:
        stmt = stmt.where(Invoice.status == wanted.value)
    start, end = date_window(date_from, date_to)
    if start is not None:
        stmt = stmt.where(Invoice.created_at >= start)
    if end is not None:
        stmt = stmt.where(Invoice.created_at < end)
    return stmt


def list_invoices(
    session: Session,
    search: Optional[str] = None,
    payment_mode: Optional[str] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> InvoiceList:
    """Filtered invoice headers plus a summary over exactly those rows."""
    stmt = _filtered(search, payment_mode, status, date_from, date_to)
    invoices = list(session.exec(stmt.order_by(*order_clause(Invoice, sort_by, sort_order))).all())
    return InvoiceList(invoices=invoices, summary=summarize(invoices))


CSV_COLUMNS = [
    "Bill Number",
    "Date",
    "Customer Name",
    "Customer Contact",
    "Payment Mode",
    "Subtotal",
    "CGST",
    "SGST",
    "Total GST",
    "Grand Total",
    "Status",
]


def export_invoices_csv(session: Session, **filters: Any) -> str:
    """Same filters as ``list_invoices``; one row per invoice, local timestamps."""
    listing = list_invoices(session, **filters)
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    for inv in listing.invoices:
        writer.writerow([
            inv.invoice_number,
            to_local(inv.created_at).strftime("%Y-%m-%d %H:%M"),
            inv.customer_name,
            inv.customer_contact,
            inv.payment_mode,
            f"{inv.subtotal:.2f}",
            f"{inv.cgst:.2f}",
            f"{inv.sgst:.2f}",
            f"{inv.total_gst:.2f}",
            f"{inv.grand_total:.2f}",
            inv.status,
        ])
    logger.info(f"Exported {len(listing.invoices)} bills to CSV")
    return buf.getvalue()


# ── Status ────────────────────────────────────────────────────────────────────


def _set_status(session: Session, invoice_id: int, target: InvoiceStatus) -> InvoiceDetail:
    with atomic(session):
        invoice = session.exec(select(Invoice).where(Invoice.id == invoice_id).with_for_update()).first()
        if invoice is None:
            raise NotFound("Bill not found", {"invoice_id": invoice_id})
        transition_status(invoice, target)
        session.add(invoice)
    logger.info(f"Invoice {invoice.invoice_number} → {target.value}")
    return get_invoice(session, invoice_id)


def disable_invoice(session: Session, invoice_id: int) -> InvoiceDetail:
    """Soft-disable: the invoice stays, but drops out of the dashboard figures."""
    return _set_status(session, invoice_id, InvoiceStatus.DISABLED)


def enable_invoice(session: Session, invoice_id: int) -> InvoiceDetail:
    return _set_status(session, invoice_id, InvoiceStatus.ACTIVE)
