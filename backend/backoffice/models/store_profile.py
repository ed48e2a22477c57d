"""SQLModel model for the letterhead details of each store (one row per store type)."""
from enum import Enum
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from backoffice.core.clock import utc_now


class StoreType(str, Enum):
    LAXMI_BOOKSTORE = "laxmi_bookstore"
    SWASTHIK_ENTERPRISES = "swasthik_enterprises"


class StoreProfile(SQLModel, table=True):
    __tablename__ = "store_profiles"

    id: Optional[int] = Field(default=None, primary_key=True)
    store_type: str = Field(index=True, unique=True, max_length=30)
    store_name: str = Field(max_length=200)
    owner_name: Optional[str] = Field(default=None, max_length=100)

    # Contact
    email: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=15)
    alternate_phone: Optional[str] = Field(default=None, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    pincode: Optional[str] = Field(default=None, max_length=10)

    # Tax and bank details printed on invoices
    gst_number: Optional[str] = Field(default=None, max_length=15)
    pan_number: Optional[str] = Field(default=None, max_length=10)
    bank_name: Optional[str] = Field(default=None, max_length=100)
    account_number: Optional[str] = Field(default=None, max_length=20)
    ifsc_code: Optional[str] = Field(default=None, max_length=11)
    branch_name: Optional[str] = Field(default=None, max_length=100)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
