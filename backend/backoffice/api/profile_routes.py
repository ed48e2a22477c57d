"""
Store profile routes.

Endpoints:
  GET  /api/profile/{store_type}   – laxmi_bookstore or swasthik_enterprises
  PUT  /api/profile/{store_type}   – set the given fields (creates on first use)
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from backoffice.core.database import get_session
from backoffice.core.security import get_current_actor
from backoffice.schemas.responses import Envelope, StoreProfileRead
from backoffice.services import store_profile

profile_router = APIRouter(prefix="/api/profile", tags=["profile"], dependencies=[Depends(get_current_actor)])


class StoreProfileIn(BaseModel):
    store_name: Optional[str] = None
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


@profile_router.get("/{store_type}", response_model=Envelope[StoreProfileRead])
def get_profile(store_type: str, session: Session = Depends(get_session)):
    profile = store_profile.get_profile(session, store_type)
    return Envelope(data=StoreProfileRead.model_validate(profile))


@profile_router.put("/{store_type}", response_model=Envelope[StoreProfileRead])
def update_profile(store_type: str, body: StoreProfileIn, session: Session = Depends(get_session)):
    profile = store_profile.update_profile(session, store_type, **body.model_dump(exclude_unset=True))
    return Envelope(data=StoreProfileRead.model_validate(profile))
