"""
Cart routes (primary ledger). The cart always belongs to the calling admin.

Endpoints:
  GET     /api/cart              – lines with live prices and totals
  POST    /api/cart              – add (merges with an existing line)
  DELETE  /api/cart              – empty the cart
  PATCH   /api/cart/{line_id}    – set quantity or increment/decrement
  DELETE  /api/cart/{line_id}    – remove one line
"""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlmodel import Session

from backoffice.core.database import get_session
from backoffice.core.security import get_current_actor
from backoffice.schemas.responses import CartItemRead, CartRead, Envelope
from backoffice.services import cart

cart_router = APIRouter(prefix="/api/cart", tags=["cart"])


class CartAddIn(BaseModel):
    product_id: int
    attribute_id: Optional[int] = None
    quantity: int = 1


class CartUpdateIn(BaseModel):
    quantity: Optional[int] = None
    action: Optional[Literal["increment", "decrement"]] = None


class CartCleared(BaseModel):
    removed: int


class LineRemoved(BaseModel):
    id: int
    deleted: bool = True


@cart_router.get("", response_model=Envelope[CartRead])
def get_cart(actor_id: int = Depends(get_current_actor), session: Session = Depends(get_session)):
    return Envelope(data=CartRead.from_view(cart.list_lines(session, actor_id)))


@cart_router.post("", response_model=Envelope[CartItemRead], status_code=status.HTTP_201_CREATED)
def add_to_cart(
    body: CartAddIn,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    item = cart.add_line(session, actor_id, body.product_id, body.attribute_id, body.quantity)
    return Envelope(data=CartItemRead.from_item(item))


@cart_router.delete("", response_model=Envelope[CartCleared])
def clear_cart(actor_id: int = Depends(get_current_actor), session: Session = Depends(get_session)):
    return Envelope(data=CartCleared(removed=cart.clear(session, actor_id)))


@cart_router.patch("/{line_id}", response_model=Envelope[CartItemRead])
def update_cart_line(
    line_id: int,
    body: CartUpdateIn,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    item = cart.update_line(session, actor_id, line_id, quantity=body.quantity, action=body.action)
    return Envelope(data=CartItemRead.from_item(item))


@cart_router.delete("/{line_id}", response_model=Envelope[LineRemoved])
def remove_cart_line(
    line_id: int,
    actor_id: int = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    cart.remove_line(session, actor_id, line_id)
    return Envelope(data=LineRemoved(id=line_id))
