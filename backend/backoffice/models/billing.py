"""SQLModel models for primary-ledger invoices, their lines and the numbering counters."""
from decimal import Decimal
from enum import Enum
from typing import Optional
from datetime import datetime
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from backoffice.core.clock import utc_now


class PaymentMode(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    OTHER = "other"


class InvoiceStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class Invoice(SQLModel, table=True):
    """
    Invoice header. Immutable after creation apart from ``status``.
    All money fields are rounded once, from full-precision line sums.
    """

    __tablename__ = "invoices"

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_number: str = Field(index=True, unique=True, max_length=50)

    # Customer
    customer_name: str = Field(max_length=100)
    customer_contact: str = Field(index=True, max_length=15)
    customer_address: Optional[str] = None

    payment_mode: str = Field(default=PaymentMode.CASH.value, index=True, max_length=20)

    # Financial
    subtotal: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    cgst: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    sgst: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total_gst: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    grand_total: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)

    status: str = Field(default=InvoiceStatus.ACTIVE.value, index=True, max_length=20)
    created_by: int = Field(foreign_key="admins.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


class InvoiceLine(SQLModel, table=True):
    """
    One billed cart line. Name, SKU, unit, variant and prices are snapshots
    taken at billing time; later catalog edits never reach them.
    """

    __tablename__ = "invoice_lines"

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="invoices.id", index=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    attribute_id: Optional[int] = Field(default=None, foreign_key="product_attributes.id", index=True)

    # Snapshot
    product_name: str = Field(max_length=200)
    product_sku: str = Field(max_length=50)
    attribute_name: Optional[str] = Field(default=None, max_length=100)
    attribute_value: Optional[str] = Field(default=None, max_length=50)
    unit: str = Field(default="piece", max_length=20)
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
    gst_rate: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    quantity: int

    # Computed
    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    cgst: Decimal = Field(max_digits=12, decimal_places=2)
    sgst: Decimal = Field(max_digits=12, decimal_places=2)
    total_gst: Decimal = Field(max_digits=12, decimal_places=2)
    total: Decimal = Field(max_digits=12, decimal_places=2)

    order: int = Field(default=0)  # position in the cart at billing time


class InvoiceSequence(SQLModel, table=True):
    """
    Last number handed out per (ledger, period). The row is locked for the
    duration of the invoice transaction, so two invoices never share a number.
    """

    __tablename__ = "invoice_sequences"
    __table_args__ = (UniqueConstraint("ledger", "period", name="uq_sequence_ledger_period"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    ledger: str = Field(max_length=20)
    period: str = Field(max_length=10)  # "YYMMDD" (daily) or "YYMM" (monthly)
    last_value: int = Field(default=0)
    updated_at: datetime = Field(default_factory=utc_now)
