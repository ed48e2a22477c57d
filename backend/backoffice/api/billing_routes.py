"""
Billing routes (primary ledger).

Endpoints:
  POST  /api/bills                 – bill the caller's cart
  GET   /api/bills                 – filtered list + summary
  GET   /api/bills/export/csv      – same filters, CSV download
  GET   /api/bills/{id}            – invoice with its lines
  PATCH /api/bills/{id}/disable
  PATCH /api/bills/{id}/enable
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlmodel import Session

from backoffice.core.clock import local_now
from backoffice.core.database import get_session
from backoffice.core.security import get_current_actor
from backoffice.schemas.responses import (
    Envelope,
    InvoiceDetailRead,
    InvoiceListRead,
    InvoiceRead,
    InvoiceSummaryRead,
)
from backoffice.services import billing

billing_router = APIRouter(prefix="/api/bills", tags=["billing"], dependencies=[Depends(get_current_actor)])


class InvoiceIn(BaseModel):
    customer_name: Optional[str] = None
    customer_contact: Optional[str] = None
    customer_address: Optional[str] = None
    payment_mode: str = "cash"


@billing_router.post("", response_model=Envelope[InvoiceDetailRead], status_code=status.HTTP_201_CREATED)
def create_bill(
    body: InvoiceIn,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    customer = billing.Customer(
        name=body.customer_name,
        contact=body.customer_contact,
        address=body.customer_address,
    )
    detail = billing.create_invoice(session, actor_id, customer, body.payment_mode)
    return Envelope(data=InvoiceDetailRead.from_detail(detail))


@billing_router.get("", response_model=Envelope[InvoiceListRead])
def list_bills(
    search: Optional[str] = Query(default=None, description="Bill number, customer name or contact"),
    payment_mode: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None, description="active | disabled"),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc"),
    session: Session = Depends(get_session),
):
    listing = billing.list_invoices(
        session,
        search=search,
        payment_mode=payment_mode,
        status=status,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order.lower(),
    )
    return Envelope(
        data=InvoiceListRead(
            items=[InvoiceRead.model_validate(i) for i in listing.invoices],
            summary=InvoiceSummaryRead.model_validate(listing.summary),
        )
    )


@billing_router.get("/export/csv")
def export_bills_csv(
    search: Optional[str] = Query(default=None),
    payment_mode: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    session: Session = Depends(get_session),
):
    """Download a CSV of bills matching filters."""
    content = billing.export_invoices_csv(
        session,
        search=search,
        payment_mode=payment_mode,
        status=status,
        date_from=date_from,
        date_to=date_to,
    )
    filename = f"bills_{local_now().date()}.csv"
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@billing_router.get("/{invoice_id}", response_model=Envelope[InvoiceDetailRead])
def get_bill(invoice_id: int, session: Session = Depends(get_session)):
    return Envelope(data=InvoiceDetailRead.from_detail(billing.get_invoice(session, invoice_id)))


@billing_router.patch("/{invoice_id}/disable", response_model=Envelope[InvoiceDetailRead])
def disable_bill(invoice_id: int, session: Session = Depends(get_session)):
    return Envelope(data=InvoiceDetailRead.from_detail(billing.disable_invoice(session, invoice_id)))


@billing_router.patch("/{invoice_id}/enable", response_model=Envelope[InvoiceDetailRead])
def enable_bill(invoice_id: int, session: Session = Depends(get_session)):
    return Envelope(data=InvoiceDetailRead.from_detail(billing.enable_invoice(session, invoice_id)))
