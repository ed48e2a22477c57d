"""SQLModel models for the SL (second-ledger) cart and invoices."""
from decimal import Decimal
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from backoffice.core.clock import utc_now
from backoffice.models.billing import InvoiceStatus, PaymentMode


class SLCartLine(SQLModel, table=True):
    """
    Free-form SL cart entry (no catalog link, no stock).
    subtotal / gst_amount / total are recomputed and stored on every change.
    """

    __tablename__ = "sl_cart_lines"

    id: Optional[int] = Field(default=None, primary_key=True)
    admin_id: int = Field(foreign_key="admins.id", index=True)
    category: str = Field(index=True, max_length=30)
    product_name: str = Field(max_length=200)
    product_price: Decimal = Field(max_digits=12, decimal_places=2)
    quantity: int = Field(default=1)
    gst_rate: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)

    subtotal: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    gst_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class SLInvoice(SQLModel, table=True):
    __tablename__ = "sl_invoices"

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_number: str = Field(index=True, unique=True, max_length=50)
    category: str = Field(index=True, max_length=30)

    # Bill to / ship to
    bill_to_name: str = Field(max_length=100)
    bill_to_address: str
    bill_to_mobile: str = Field(index=True, max_length=15)
    ship_to_name: str = Field(max_length=100)
    ship_to_address: str
    ship_to_mobile: str = Field(max_length=15)

    payment_mode: str = Field(default=PaymentMode.CASH.value, index=True, max_length=20)

    subtotal: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    cgst: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    sgst: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total_gst: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    grand_total: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)

    status: str = Field(default=InvoiceStatus.ACTIVE.value, index=True, max_length=20)
    created_by: int = Field(foreign_key="admins.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


class SLInvoiceLine(SQLModel, table=True):
    __tablename__ = "sl_invoice_lines"

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="sl_invoices.id", index=True)
    product_name: str = Field(max_length=200)
    product_price: Decimal = Field(max_digits=12, decimal_places=2)
    quantity: int
    gst_rate: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    cgst: Decimal = Field(max_digits=12, decimal_places=2)
    sgst: Decimal = Field(max_digits=12, decimal_places=2)
    total_gst: Decimal = Field(max_digits=12, decimal_places=2)
    total: Decimal = Field(max_digits=12, decimal_places=2)
    order: int = Field(default=0)
