"""
Store profiles: the name, address, tax and bank details of each store.

There is one profile per store type. The first PUT creates it and needs a
store name; later PUTs change only the fields they carry. A blank optional
field clears it.
"""
from __future__ import annotations

import re
from typing import Any, Optional

from loguru import logger
from sqlmodel import Session, select

from backoffice.core.clock import utc_now
from backoffice.core.database import atomic
from backoffice.core.errors import InvalidInput, NotFound
from backoffice.models.store_profile import StoreProfile, StoreType
from backoffice.services.billing import require_text, validate_contact

_STORE_LABELS = {
    StoreType.LAXMI_BOOKSTORE: "Laxmi Bookstore",
    StoreType.SWASTHIK_ENTERPRISES: "Swasthik Enterprises",
}

# field -> max length, for plain optional text
_TEXT_FIELDS = {
    "owner_name": 100,
    "address": 2000,
    "city": 100,
    "state": 100,
    "bank_name": 100,
    "account_number": 20,
    "branch_name": 100,
}

# field -> (pattern, message), checked after upper-casing
_CODE_FIELDS = {
    "gst_number": (re.compile(r"^\d{2}[A-Z]{5}\d{4}[A-Z][0-9A-Z]Z[0-9A-Z]$"), "gst_number must be a 15 character GSTIN"),
    "pan_number": (re.compile(r"^[A-Z]{5}\d{4}[A-Z]$"), "pan_number must be a 10 character PAN"),
    "ifsc_code": (re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$"), "ifsc_code must be an 11 character IFSC"),
    "pincode": (re.compile(r"^\d{6}$"), "pincode must be 6 digits"),
}

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

EDITABLE_FIELDS = ("store_name", "email", "phone", "alternate_phone", *_TEXT_FIELDS, *_CODE_FIELDS)


def parse_store_type(value: Any) -> StoreType:
    try:
        return StoreType(value)
    except ValueError:
        raise InvalidInput(
            f"Unknown store type {value!r}",
            {"field": "store_type", "allowed": [t.value for t in StoreType]},
        )


def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _clean(field_name: str, value: Any) -> Optional[str]:
    if field_name == "store_name":
        return require_text(value, "store_name", 200, "store_name is required")
    if _blank(value):
        return None
    if field_name in ("phone", "alternate_phone"):
        return validate_contact(value, field_name, f"{field_name} is required")
    if field_name == "email":
        value = require_text(value, "email", 100, "email is required")
        if not _EMAIL_RE.match(value):
            raise InvalidInput("email is not a valid address", {"field": "email"})
        return value
    if field_name in _CODE_FIELDS:
        pattern, message = _CODE_FIELDS[field_name]
        value = str(value).strip().upper()
        if not pattern.match(value):
            raise InvalidInput(message, {"field": field_name})
        return value
    return require_text(value, field_name, _TEXT_FIELDS[field_name], f"{field_name} is required")


def _find(session: Session, store_type: StoreType) -> Optional[StoreProfile]:
    return session.exec(select(StoreProfile).where(StoreProfile.store_type == store_type.value)).first()


def get_profile(session: Session, store_type: Any) -> StoreProfile:
    store_type = parse_store_type(store_type)
    profile = _find(session, store_type)
    if profile is None:
        raise NotFound(f"{_STORE_LABELS[store_type]} profile not found", {"store_type": store_type.value})
    return profile


def update_profile(session: Session, store_type: Any, **changes: Any) -> StoreProfile:
    """Set the given fields of a store's profile, creating the profile on first use."""
    store_type = parse_store_type(store_type)
    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if unknown:
        raise InvalidInput(f"Unknown profile field {unknown[0]}", {"field": unknown[0]})
    cleaned = {name: _clean(name, value) for name, value in changes.items()}

    with atomic(session):
        profile = _find(session, store_type)
        created = profile is None
        if created:
            if "store_name" not in cleaned:
                raise InvalidInput("store_name is required", {"field": "store_name"})
            profile = StoreProfile(store_type=store_type.value, store_name=cleaned["store_name"])
        for name, value in cleaned.items():
            setattr(profile, name, value)
        profile.updated_at = utc_now()
        session.add(profile)
    session.refresh(profile)

    if created:
        logger.info(f"Store profile for {store_type.value} created")
    else:
        logger.info(f"Store profile for {store_type.value} updated: {sorted(changes)}")
    return profile
