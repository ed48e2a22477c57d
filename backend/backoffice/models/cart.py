"""SQLModel model for the primary-ledger cart."""
from typing import Optional
from datetime import datetime
from sqlalchemy import Index, func
from sqlmodel import SQLModel, Field

from backoffice.core.clock import utc_now


class CartLine(SQLModel, table=True):
    """
    One (product, optional variant, quantity) entry in an admin's cart.
    Prices and tax are never stored here; they are read live from the catalog.
    """

    __tablename__ = "cart_lines"

    id: Optional[int] = Field(default=None, primary_key=True)
    admin_id: int = Field(foreign_key="admins.id", index=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    attribute_id: Optional[int] = Field(default=None, foreign_key="product_attributes.id", index=True)
    quantity: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# One line per (admin, product, variant). A plain UNIQUE would let any number
# of variant-less lines through, since NULLs never compare equal.
Index(
    "uq_cart_admin_product_attribute",
    CartLine.__table__.c.admin_id,
    CartLine.__table__.c.product_id,
    func.coalesce(CartLine.__table__.c.attribute_id, 0),
    unique=True,
)
