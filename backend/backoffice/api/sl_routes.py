"""
SL ledger routes: free-form cart and monthly-numbered bills.

Endpoints:
  GET/POST          /api/sl/cart
  GET/PATCH/DELETE  /api/sl/cart/{line_id}
  POST/GET          /api/sl/bills
  GET               /api/sl/bills/{id}
  PATCH             /api/sl/bills/{id}/disable
  PATCH             /api/sl/bills/{id}/enable
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlmodel import Session

from backoffice.core.database import get_session
from backoffice.core.security import get_current_actor
from backoffice.schemas.responses import (
    Envelope,
    InvoiceSummaryRead,
    SLCartLineRead,
    SLCartRead,
    SLInvoiceDetailRead,
    SLInvoiceListRead,
    SLInvoiceRead,
)
from backoffice.services import sl

sl_router = APIRouter(prefix="/api/sl", tags=["sl"], dependencies=[Depends(get_current_actor)])


class SLCartAddIn(BaseModel):
    category: Optional[str] = None
    product_name: Optional[str] = None
    product_price: Optional[Decimal] = None
    quantity: int = 1
    gst_rate: Decimal = Decimal("0")


class SLCartUpdateIn(BaseModel):
    product_name: Optional[str] = None
    product_price: Optional[Decimal] = None
    quantity: Optional[int] = None
    gst_rate: Optional[Decimal] = None


class PartyIn(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    mobile: Optional[str] = None


class SLInvoiceIn(BaseModel):
    bill_to: Optional[PartyIn] = None
    ship_to: Optional[PartyIn] = None
    payment_mode: str = "cash"


class LineRemoved(BaseModel):
    id: int
    deleted: bool = True


# ── Cart ──────────────────────────────────────────────────────────────────────


@sl_router.get("/cart", response_model=Envelope[SLCartRead])
def get_sl_cart(actor_id: int = Depends(get_current_actor), session: Session = Depends(get_session)):
    return Envelope(data=SLCartRead.from_view(sl.list_sl_lines(session, actor_id)))


@sl_router.post("/cart", response_model=Envelope[SLCartLineRead], status_code=status.HTTP_201_CREATED)
def add_to_sl_cart(
    body: SLCartAddIn,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    line = sl.add_sl_line(session, actor_id, **body.model_dump())
    return Envelope(data=SLCartLineRead.model_validate(line))


@sl_router.get("/cart/{line_id}", response_model=Envelope[SLCartLineRead])
def get_sl_cart_line(
    line_id: int,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    return Envelope(data=SLCartLineRead.model_validate(sl.get_sl_line(session, actor_id, line_id)))


@sl_router.patch("/cart/{line_id}", response_model=Envelope[SLCartLineRead])
def update_sl_cart_line(
    line_id: int,
    body: SLCartUpdateIn,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    line = sl.update_sl_line(session, actor_id, line_id, **body.model_dump(exclude_unset=True))
    return Envelope(data=SLCartLineRead.model_validate(line))


@sl_router.delete("/cart/{line_id}", response_model=Envelope[LineRemoved])
def remove_sl_cart_line(
    line_id: int,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    sl.remove_sl_line(session, actor_id, line_id)
    return Envelope(data=LineRemoved(id=line_id))


# ── Bills ─────────────────────────────────────────────────────────────────────


@sl_router.post("/bills", response_model=Envelope[SLInvoiceDetailRead], status_code=status.HTTP_201_CREATED)
def create_sl_bill(
    body: SLInvoiceIn,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    detail = sl.create_sl_invoice(
        session,
        actor_id,
        bill_to=body.bill_to.model_dump() if body.bill_to else None,
        ship_to=body.ship_to.model_dump() if body.ship_to else None,
        payment_mode=body.payment_mode,
    )
    return Envelope(data=SLInvoiceDetailRead.from_detail(detail))


@sl_router.get("/bills", response_model=Envelope[SLInvoiceListRead])
def list_sl_bills(
    category: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None, description="active | disabled"),
    search: Optional[str] = Query(default=None, description="Bill number, bill-to name or mobile"),
    payment_mode: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc"),
    session: Session = Depends(get_session),
):
    listing = sl.list_sl_invoices(
        session,
        category=category,
        status=status,
        search=search,
        payment_mode=payment_mode,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order.lower(),
    )
    return Envelope(
        data=SLInvoiceListRead(
            items=[SLInvoiceRead.model_validate(i) for i in listing.invoices],
            summary=InvoiceSummaryRead.model_validate(listing.summary),
        )
    )


@sl_router.get("/bills/{invoice_id}", response_model=Envelope[SLInvoiceDetailRead])
def get_sl_bill(invoice_id: int, session: Session = Depends(get_session)):
    return Envelope(data=SLInvoiceDetailRead.from_detail(sl.get_sl_invoice(session, invoice_id)))


@sl_router.patch("/bills/{invoice_id}/disable", response_model=Envelope[SLInvoiceDetailRead])
def disable_sl_bill(invoice_id: int, session: Session = Depends(get_session)):
    return Envelope(data=SLInvoiceDetailRead.from_detail(sl.disable_sl_invoice(session, invoice_id)))


@sl_router.patch("/bills/{invoice_id}/enable", response_model=Envelope[SLInvoiceDetailRead])
def enable_sl_bill(invoice_id: int, session: Session = Depends(get_session)):
    return Envelope(data=SLInvoiceDetailRead.from_detail(sl.enable_sl_invoice(session, invoice_id)))
