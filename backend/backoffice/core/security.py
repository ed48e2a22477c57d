"""
Actor resolution.

Requests carry ``Authorization: Bearer <token>``. Only the sha256 digest of a
token is stored, on the Admin row. With AUTH_ENABLED=false every request runs
as the bootstrap admin created at startup.
"""
import hashlib
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlmodel import Session, select

from backoffice.core.config import settings
from backoffice.core.database import get_session
from backoffice.core.errors import Unauthorized
from backoffice.models.admin import Admin

_bearer = HTTPBearer(auto_error=False)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _bootstrap_admin(session: Session) -> Optional[Admin]:
    return session.exec(select(Admin).where(Admin.email == settings.AUTH_EMAIL)).first()


def ensure_default_admin(session: Session) -> Admin:
    """Create the configured admin on first start; re-key it if AUTH_TOKEN changed."""
    admin = _bootstrap_admin(session)
    digest = hash_token(settings.AUTH_TOKEN)
    if admin is None:
        admin = Admin(username=settings.AUTH_USERNAME, email=settings.AUTH_EMAIL, token_hash=digest)
        logger.info(f"Created bootstrap admin '{admin.username}' <{admin.email}>")
    elif admin.token_hash != digest:
        admin.token_hash = digest
        logger.info(f"Rotated API token of admin '{admin.username}'")
    else:
        return admin
    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin


def resolve_actor(session: Session, credential: Optional[str]) -> int:
    """Map an API token to the id of an active admin."""
    if not settings.AUTH_ENABLED:
        admin = _bootstrap_admin(session)
        if admin is None:
            admin = ensure_default_admin(session)
        return admin.id

    if not credential:
        raise Unauthorized("Authentication required")
    admin = session.exec(select(Admin).where(Admin.token_hash == hash_token(credential))).first()
    if admin is None:
        logger.warning("Rejected request with an unknown API token")
        raise Unauthorized("Invalid API token")
    if not admin.is_active:
        raise Unauthorized("Admin account is disabled", {"admin_id": admin.id})
    return admin.id


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    session: Session = Depends(get_session),
) -> int:
    """FastAPI dependency: the acting admin's id."""
    return resolve_actor(session, credentials.credentials if credentials else None)
