"""
Primary-ledger cart: one cart per admin, lines keyed by (product, variant).

Prices, GST and totals are never stored on a line; ``list_lines`` computes
them from the live catalog every time.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from loguru import logger
from sqlmodel import Session, col, select

from backoffice.core.clock import utc_now
from backoffice.core.config import settings
from backoffice.core.database import atomic
from backoffice.core.errors import (
    CategoryConflict,
    InsufficientStock,
    InvalidInput,
    NotFound,
    Unavailable,
)
from backoffice.models.admin import Admin
from backoffice.models.cart import CartLine
from backoffice.models.catalog import Category, Product, ProductAttribute
from backoffice.services import catalog
from backoffice.services.pricing import LineAmounts, line_amounts, sum_amounts

INCREMENT = "increment"
DECREMENT = "decrement"


@dataclass(frozen=True)
class CartItem:
    line: CartLine
    product: Product
    category: Category
    variant: Optional[ProductAttribute]
    unit_price: Decimal
    gst_rate: Decimal
    amounts: LineAmounts  # rounded

    @property
    def available_stock(self) -> int:
        return self.variant.stock if self.variant else self.product.stock


@dataclass(frozen=True)
class CartView:
    items: list[CartItem]
    category: Optional[Category]
    total_items: int
    subtotal: Decimal
    total_gst: Decimal
    grand_total: Decimal


def _quantity(value: Any, field: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidInput(f"{field} must be a whole number of at least 1", {"field": field})
    return value


def _ensure_available(product: Product, variant: Optional[ProductAttribute]) -> None:
    if not product.is_active:
        raise Unavailable(f"Product \"{product.name}\" is not available", {"product_id": product.id})
    if variant is not None and not variant.is_active:
        raise Unavailable(
            f"Variant \"{variant.attribute_name}: {variant.attribute_value}\" of "
            f"\"{product.name}\" is not available",
            {"product_id": product.id, "attribute_id": variant.id},
        )


def _ensure_stock(product: Product, variant: Optional[ProductAttribute], required: int) -> None:
    available = variant.stock if variant is not None else product.stock
    if available < required:
        raise InsufficientStock(
            f"Insufficient stock for \"{product.name}\". Available: {available}",
            {
                "product_id": product.id,
                "attribute_id": variant.id if variant else None,
                "available": available,
                "required": required,
            },
        )


def _cart_category(session: Session, actor_id: int) -> Optional[Category]:
    """Category of whatever is already in the cart (all lines share one)."""
    return session.exec(
        select(Category)
        .join(Product, Product.category_id == Category.id)
        .join(CartLine, CartLine.product_id == Product.id)
        .where(CartLine.admin_id == actor_id)
        .order_by(CartLine.id)
        .limit(1)
    ).first()


def lock_actor(session: Session, actor_id: int) -> Admin:
    """Row-lock the acting admin; cart writes and billing of one admin queue on it."""
    admin = session.exec(select(Admin).where(Admin.id == actor_id).with_for_update()).first()
    if admin is None:
        raise NotFound("Admin not found", {"admin_id": actor_id})
    return admin


def _own_line(session: Session, actor_id: int, line_id: int) -> CartLine:
    line = session.get(CartLine, line_id)
    if line is None or line.admin_id != actor_id:
        raise NotFound("Cart item not found", {"line_id": line_id})
    return line


def _build_item(session: Session, line: CartLine) -> CartItem:
    product = session.get(Product, line.product_id)
    category = session.get(Category, product.category_id)
    variant = session.get(ProductAttribute, line.attribute_id) if line.attribute_id else None
    unit_price = variant.price if variant is not None else product.price
    amounts = line_amounts(unit_price, line.quantity, product.gst_rate, settings.PRIMARY_TAX_ENABLED)
    return CartItem(
        line=line,
        product=product,
        category=category,
        variant=variant,
        unit_price=unit_price,
        gst_rate=product.gst_rate,
        amounts=amounts.rounded(),
    )


# ── Operations ────────────────────────────────────────────────────────────────


def add_line(
    session: Session,
    actor_id: int,
    product_id: int,
    attribute_id: Optional[int] = None,
    quantity: Any = 1,
) -> CartItem:
    """Add to the cart, merging with an existing line for the same product/variant."""
    quantity = _quantity(quantity)

    with atomic(session):
        lock_actor(session, actor_id)
        product = catalog.get_product(session, product_id)
        variant = catalog.get_variant(session, attribute_id, product_id) if attribute_id else None
        _ensure_available(product, variant)

        current = _cart_category(session, actor_id)
        if current is not None and current.id != product.category_id:
            attempted = session.get(Category, product.category_id)
            logger.warning(
                f"Admin {actor_id}: '{attempted.name}' product rejected, cart holds '{current.name}'"
            )
            raise CategoryConflict(
                f"Cannot add products from \"{attempted.name}\" category. "
                f"Your cart contains products from \"{current.name}\" category. "
                "Please clear your cart or complete the current order first.",
                {"current_category": current.name, "attempted_category": attempted.name},
            )

        stmt = select(CartLine).where(CartLine.admin_id == actor_id, CartLine.product_id == product_id)
        if attribute_id:
            stmt = stmt.where(CartLine.attribute_id == attribute_id)
        else:
            stmt = stmt.where(col(CartLine.attribute_id).is_(None))
        line = session.exec(stmt).first()

        already = line.quantity if line else 0
        _ensure_stock(product, variant, already + quantity)

        if line is None:
            line = CartLine(
                admin_id=actor_id,
                product_id=product_id,
                attribute_id=attribute_id or None,
                quantity=quantity,
            )
        else:
            line.quantity = already + quantity
            line.updated_at = utc_now()
        session.add(line)

    session.refresh(line)
    logger.debug(f"Admin {actor_id}: cart line {line.id} now {line.quantity} × product {product_id}")
    return _build_item(session, line)


def update_line(
    session: Session,
    actor_id: int,
    line_id: int,
    quantity: Any = None,
    action: Optional[str] = None,
) -> CartItem:
    """Set a line's quantity, or step it up/down by one with ``action``."""
    if action is None and quantity is None:
        raise InvalidInput("Please provide either action (increment/decrement) or quantity")
    if action is not None and action not in (INCREMENT, DECREMENT):
        raise InvalidInput("action must be 'increment' or 'decrement'", {"field": "action"})
    if action is None and (isinstance(quantity, bool) or not isinstance(quantity, int)):
        raise InvalidInput("quantity must be a whole number", {"field": "quantity"})

    with atomic(session):
        lock_actor(session, actor_id)
        line = _own_line(session, actor_id, line_id)
        product = catalog.get_product(session, line.product_id)
        variant = (
            catalog.get_variant(session, line.attribute_id, line.product_id) if line.attribute_id else None
        )
        _ensure_available(product, variant)

        if action == INCREMENT:
            new_quantity = line.quantity + 1
        elif action == DECREMENT:
            new_quantity = line.quantity - 1
        else:
            new_quantity = quantity

        if new_quantity < 1:
            raise InvalidInput(
                "Quantity must be at least 1. Use remove endpoint to delete item.",
                {"line_id": line_id, "quantity": new_quantity},
            )
        _ensure_stock(product, variant, new_quantity)

        line.quantity = new_quantity
        line.updated_at = utc_now()
        session.add(line)

    session.refresh(line)
    return _build_item(session, line)


def remove_line(session: Session, actor_id: int, line_id: int) -> None:
    with atomic(session):
        session.delete(_own_line(session, actor_id, line_id))
    logger.debug(f"Admin {actor_id}: cart line {line_id} removed")


def clear(session: Session, actor_id: int) -> int:
    """Remove every line of the actor's cart; returns how many were removed."""
    with atomic(session):
        lines = session.exec(select(CartLine).where(CartLine.admin_id == actor_id)).all()
        for line in lines:
            session.delete(line)
    return len(lines)


def list_lines(session: Session, actor_id: int) -> CartView:
    lines = session.exec(
        select(CartLine).where(CartLine.admin_id == actor_id).order_by(CartLine.id)
    ).all()
    items = [_build_item(session, line) for line in lines]

    totals = sum_amounts(
        line_amounts(i.unit_price, i.line.quantity, i.gst_rate, settings.PRIMARY_TAX_ENABLED)
        for i in items
    ).rounded()

    return CartView(
        items=items,
        category=items[0].category if items else None,
        total_items=sum(i.line.quantity for i in items),
        subtotal=totals.subtotal,
        total_gst=totals.gst,
        grand_total=totals.total,
    )
