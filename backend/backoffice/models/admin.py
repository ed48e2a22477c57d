"""SQLModel model for back-office admins (the actors every cart and invoice belongs to)."""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from backoffice.core.clock import utc_now


class Admin(SQLModel, table=True):
    __tablename__ = "admins"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(max_length=50)
    email: str = Field(index=True, unique=True, max_length=100)
    # sha256 hex digest of the API token; the token itself is never stored
    token_hash: str = Field(index=True, unique=True, max_length=64)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
