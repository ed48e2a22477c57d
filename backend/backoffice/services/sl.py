"""
SL (second-ledger) billing.

Free-form cart lines (typed-in name and price, no catalog, no stock) turned
into monthly-numbered invoices with separate bill-to / ship-to parties.
Whether a category charges GST comes from ``settings.SL_CATEGORIES``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union

from loguru import logger
from sqlmodel import Session, func, or_, select

from backoffice.core.clock import as_utc, utc_now
from backoffice.core.config import settings
from backoffice.core.database import atomic
from backoffice.core.errors import BackofficeError, CategoryConflict, EmptyCart, InvalidInput, NotFound
from backoffice.models.billing import InvoiceStatus, PaymentMode
from backoffice.models.sl import SLCartLine, SLInvoice, SLInvoiceLine
from backoffice.services.billing import (
    InvoiceList,
    date_window,
    order_clause,
    parse_payment_mode,
    parse_status,
    require_text,
    summarize,
    transition_status,
    validate_contact,
)
from backoffice.services.cart import lock_actor
from backoffice.services.pricing import ZERO, line_amounts, sum_amounts, to_decimal
from backoffice.services.sequence import SL_NUMBERING, next_invoice_number

SL_SORTABLE_FIELDS = ("created_at", "invoice_number", "grand_total", "bill_to_name")


@dataclass(frozen=True)
class Party:
    name: str
    address: str
    mobile: str


@dataclass
class SLCartView:
    items: list[SLCartLine]
    category: Optional[str]
    subtotal: Decimal
    total_gst: Decimal
    grand_total: Decimal


@dataclass
class SLInvoiceDetail:
    invoice: SLInvoice
    lines: list[SLInvoiceLine]


def tax_enabled(category: str) -> bool:
    return bool(settings.SL_CATEGORIES.get(category, False))


# ── Validation ────────────────────────────────────────────────────────────────


def _category(value: Any) -> str:
    allowed = " or ".join(settings.SL_CATEGORIES)
    if not value:
        raise InvalidInput(f"Category is required ({allowed})", {"field": "category"})
    if value not in settings.SL_CATEGORIES:
        raise InvalidInput(
            f"Invalid category. Must be {allowed}",
            {"field": "category", "allowed": list(settings.SL_CATEGORIES)},
        )
    return value


def _price(value: Any) -> Decimal:
    try:
        price = to_decimal(value) if value is not None else None
    except (ArithmeticError, ValueError, TypeError):
        price = None
    if price is None or not price.is_finite() or price <= 0:
        raise InvalidInput("Valid product price is required", {"field": "product_price"})
    return price


def _quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidInput("Quantity must be at least 1", {"field": "quantity"})
    return value


def _rate(value: Any) -> Decimal:
    try:
        rate = to_decimal(value if value is not None else 0)
    except (ArithmeticError, ValueError, TypeError):
        rate = None
    if rate is None or not rate.is_finite() or rate < 0 or rate > 100:
        raise InvalidInput("GST rate must be between 0 and 100", {"field": "gst_rate"})
    return rate


def _as_party(value: Union[Party, dict, None], label: str) -> Party:
    message = f"{label} details are required (name, address, mobile)"
    if value is None:
        raise InvalidInput(message)
    if isinstance(value, dict):
        value = Party(name=value.get("name"), address=value.get("address"), mobile=value.get("mobile"))
    prefix = label.lower().replace(" ", "_")
    return Party(
        name=require_text(value.name, f"{prefix}_name", 100, message),
        address=require_text(value.address, f"{prefix}_address", 500, message),
        mobile=validate_contact(value.mobile, f"{prefix}_mobile", message),
    )


def _recompute(line: SLCartLine) -> None:
    """Store the line's money from its price, quantity and (taxed) rate."""
    taxed = tax_enabled(line.category)
    if not taxed:
        line.gst_rate = ZERO
    amounts = line_amounts(line.product_price, line.quantity, line.gst_rate, taxed).rounded()
    line.subtotal = amounts.subtotal
    line.gst_amount = amounts.gst
    line.total = amounts.total


def _own_line(session: Session, actor_id: int, line_id: int) -> SLCartLine:
    line = session.get(SLCartLine, line_id)
    if line is None or line.admin_id != actor_id:
        raise NotFound("Cart item not found", {"line_id": line_id})
    return line


# ── Cart ──────────────────────────────────────────────────────────────────────


def add_sl_line(
    session: Session,
    actor_id: int,
    category: Any,
    product_name: Any,
    product_price: Any,
    quantity: Any = 1,
    gst_rate: Any = 0,
) -> SLCartLine:
    """Always appends a new line; SL lines are never merged."""
    line = SLCartLine(
        admin_id=actor_id,
        category=_category(category),
        product_name=require_text(product_name, "product_name", 200, "Product name is required"),
        product_price=_price(product_price),
        quantity=_quantity(quantity),
        gst_rate=_rate(gst_rate),
    )
    _recompute(line)

    with atomic(session):
        lock_actor(session, actor_id)
        current = session.exec(
            select(SLCartLine.category).where(SLCartLine.admin_id == actor_id).order_by(SLCartLine.id).limit(1)
        ).first()
        if current is not None and current != line.category:
            logger.warning(f"Admin {actor_id}: SL '{line.category}' line rejected, cart holds '{current}'")
            raise CategoryConflict(
                f"Cannot mix categories. Your cart contains items from {current}. Please clear your cart first.",
                {"current_category": current, "attempted_category": line.category},
            )
        session.add(line)

    session.refresh(line)
    return line


def get_sl_line(session: Session, actor_id: int, line_id: int) -> SLCartLine:
    return _own_line(session, actor_id, line_id)


def update_sl_line(session: Session, actor_id: int, line_id: int, **changes: Any) -> SLCartLine:
    """
    Change name, price, quantity or GST rate. A GST rate sent for an untaxed
    category is ignored; totals are recomputed either way.
    """
    with atomic(session):
        line = _own_line(session, actor_id, line_id)
        if changes.get("product_name") is not None:
            line.product_name = require_text(changes["product_name"], "product_name", 200, "Product name is required")
        if changes.get("product_price") is not None:
            line.product_price = _price(changes["product_price"])
        if changes.get("quantity") is not None:
            line.quantity = _quantity(changes["quantity"])
        if changes.get("gst_rate") is not None and tax_enabled(line.category):
            line.gst_rate = _rate(changes["gst_rate"])
        _recompute(line)
        line.updated_at = utc_now()
        session.add(line)

    session.refresh(line)
    return line


def remove_sl_line(session: Session, actor_id: int, line_id: int) -> None:
    with atomic(session):
        session.delete(_own_line(session, actor_id, line_id))


def list_sl_lines(session: Session, actor_id: int) -> SLCartView:
    items = list(
        session.exec(select(SLCartLine).where(SLCartLine.admin_id == actor_id).order_by(SLCartLine.id)).all()
    )
    totals = sum_amounts(
        line_amounts(i.product_price, i.quantity, i.gst_rate, tax_enabled(i.category)) for i in items
    ).rounded()
    return SLCartView(
        items=items,
        category=items[0].category if items else None,
        subtotal=totals.subtotal,
        total_gst=totals.gst,
        grand_total=totals.total,
    )


# ── Invoices ──────────────────────────────────────────────────────────────────


def create_sl_invoice(
    session: Session,
    actor_id: int,
    bill_to: Union[Party, dict],
    ship_to: Union[Party, dict],
    payment_mode: Any = PaymentMode.CASH,
    now: Optional[datetime] = None,
) -> SLInvoiceDetail:
    bill = _as_party(bill_to, "Bill To")
    ship = _as_party(ship_to, "Ship To")
    mode = parse_payment_mode(payment_mode)
    created_at = as_utc(now) if now else utc_now()

    try:
        with atomic(session):
            lock_actor(session, actor_id)
            cart_lines = session.exec(
                select(SLCartLine)
                .where(SLCartLine.admin_id == actor_id)
                .order_by(SLCartLine.id)
                .with_for_update()
            ).all()
            if not cart_lines:
                raise EmptyCart("Cart is empty")

            category = cart_lines[0].category
            taxed = tax_enabled(category)
            priced = [
                (cl, line_amounts(cl.product_price, cl.quantity, cl.gst_rate if taxed else ZERO, taxed))
                for cl in cart_lines
            ]
            totals = sum_amounts(a for _, a in priced).rounded()
            number = next_invoice_number(session, SL_NUMBERING, SLInvoice.invoice_number, created_at)

            invoice = SLInvoice(
                invoice_number=number,
                category=category,
                bill_to_name=bill.name,
                bill_to_address=bill.address,
                bill_to_mobile=bill.mobile,
                ship_to_name=ship.name,
                ship_to_address=ship.address,
                ship_to_mobile=ship.mobile,
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

            for position, (cl, amounts) in enumerate(priced, start=1):
                rounded = amounts.rounded()
                session.add(
                    SLInvoiceLine(
                        invoice_id=invoice.id,
                        product_name=cl.product_name,
                        product_price=cl.product_price,
                        quantity=cl.quantity,
                        gst_rate=cl.gst_rate if taxed else ZERO,
                        subtotal=rounded.subtotal,
                        cgst=rounded.cgst,
                        sgst=rounded.sgst,
                        total_gst=rounded.gst,
                        total=rounded.total,
                        order=position,
                    )
                )
                session.delete(cl)
    except BackofficeError as exc:
        logger.warning(f"Admin {actor_id}: SL bill not created ({exc.kind}): {exc.message}")
        raise

    logger.info(
        f"SL invoice {number} ({category}) created by admin {actor_id}: "
        f"{len(priced)} lines, grand total {totals.total}"
    )
    return get_sl_invoice(session, invoice.id)


def get_sl_invoice(session: Session, invoice_id: int) -> SLInvoiceDetail:
    invoice = session.get(SLInvoice, invoice_id)
    if invoice is None:
        raise NotFound("Bill not found", {"invoice_id": invoice_id})
    lines = session.exec(
        select(SLInvoiceLine)
        .where(SLInvoiceLine.invoice_id == invoice_id)
        .order_by(SLInvoiceLine.order, SLInvoiceLine.id)
    ).all()
    return SLInvoiceDetail(invoice=invoice, lines=list(lines))


def list_sl_invoices(
    session: Session,
    category: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    payment_mode: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> InvoiceList:
    stmt = select(SLInvoice)
    if category:
        stmt = stmt.where(SLInvoice.category == _category(category))
    wanted = parse_status(status)
    if wanted is not None:
        stmt = stmt.where(SLInvoice.status == wanted.value)
    if payment_mode:
        stmt = stmt.where(SLInvoice.payment_mode == parse_payment_mode(payment_mode).value)
    if search:
        needle = search.strip().lower()
        stmt = stmt.where(
            or_(
                func.lower(SLInvoice.invoice_number).contains(needle, autoescape=True),
                func.lower(SLInvoice.bill_to_name).contains(needle, autoescape=True),
                func.lower(SLInvoice.bill_to_mobile).contains(needle, autoescape=True),
            )
        )
    start, end = date_window(date_from, date_to)
    if start is not None:
        stmt = stmt.where(SLInvoice.created_at >= start)
    if end is not None:
        stmt = stmt.where(SLInvoice.created_at < end)

    stmt = stmt.order_by(*order_clause(SLInvoice, sort_by, sort_order, SL_SORTABLE_FIELDS))
    invoices = list(session.exec(stmt).all())
    return InvoiceList(invoices=invoices, summary=summarize(invoices))


def _set_status(session: Session, invoice_id: int, target: InvoiceStatus) -> SLInvoiceDetail:
    with atomic(session):
        invoice = session.exec(select(SLInvoice).where(SLInvoice.id == invoice_id).with_for_update()).first()
        if invoice is None:
            raise NotFound("Bill not found", {"invoice_id": invoice_id})
        transition_status(invoice, target)
        session.add(invoice)
    logger.info(f"SL invoice {invoice.invoice_number} → {target.value}")
    return get_sl_invoice(session, invoice_id)


def disable_sl_invoice(session: Session, invoice_id: int) -> SLInvoiceDetail:
    return _set_status(session, invoice_id, InvoiceStatus.DISABLED)


def enable_sl_invoice(session: Session, invoice_id: int) -> SLInvoiceDetail:
    return _set_status(session, invoice_id, InvoiceStatus.ACTIVE)
