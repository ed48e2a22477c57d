"""
Catalog store: categories → subcategories → products → variants.

Read helpers (``get_product``, ``get_variant``) and ``decrement_stock`` are
what the cart and billing engines consume. The management functions commit
their own unit of work via ``atomic``.
"""
from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Optional

from loguru import logger
from sqlalchemy import update
from sqlmodel import Session, col, func, or_, select

from backoffice.core.clock import utc_now
from backoffice.core.config import settings
from backoffice.core.database import atomic
from backoffice.core.errors import Conflict, InsufficientStock, InvalidInput, NotFound
from backoffice.models.billing import InvoiceLine
from backoffice.models.cart import CartLine
from backoffice.models.catalog import Category, Product, ProductAttribute, SubCategory
from backoffice.services.pricing import to_decimal

_HSN_RE = re.compile(r"^[0-9]{4,8}$")


# ── Validation helpers ────────────────────────────────────────────────────────


def _text(value: Any, field: str, max_len: int) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{field} is required", {"field": field})
    value = str(value).strip()
    if len(value) > max_len:
        raise InvalidInput(f"{field} must not exceed {max_len} characters", {"field": field})
    return value


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def _money(value: Any, field: str, required: bool = True) -> Optional[Decimal]:
    if value is None:
        if required:
            raise InvalidInput(f"{field} is required", {"field": field})
        return None
    try:
        amount = to_decimal(value)
    except (ArithmeticError, ValueError, TypeError):
        raise InvalidInput(f"{field} must be a number", {"field": field})
    if not amount.is_finite() or amount < 0:
        raise InvalidInput(f"{field} must be a non-negative number", {"field": field})
    return amount


def _gst_rate(value: Any) -> Decimal:
    rate = _money(value if value is not None else 0, "gst_rate")
    if rate > 100:
        raise InvalidInput("gst_rate must be between 0 and 100", {"field": "gst_rate"})
    return rate


def _stock(value: Any, field: str = "stock") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f"{field} must be a non-negative integer", {"field": field})
    return value


def _hsn(value: Any) -> Optional[str]:
    value = _optional_text(value)
    if value is not None and not _HSN_RE.match(value):
        raise InvalidInput("hsn must be 4 to 8 digits", {"field": "hsn"})
    return value


def _category_name(name: Any) -> str:
    name = _text(name, "name", 100)
    allowed = settings.ALLOWED_CATEGORY_NAMES
    if allowed and name not in allowed:
        raise InvalidInput(
            f"Only {', '.join(allowed)} categories are allowed",
            {"field": "name", "allowed": allowed},
        )
    return name


# ── Lookups used by cart & billing ────────────────────────────────────────────


def get_category(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found", {"category_id": category_id})
    return category


def get_subcategory(session: Session, subcategory_id: int) -> SubCategory:
    subcategory = session.get(SubCategory, subcategory_id)
    if subcategory is None:
        raise NotFound("SubCategory not found", {"subcategory_id": subcategory_id})
    return subcategory


def get_product(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found", {"product_id": product_id})
    return product


def get_variant(
    session: Session, attribute_id: int, product_id: Optional[int] = None
) -> ProductAttribute:
    """Variant by id; when ``product_id`` is given it must be that product's variant."""
    variant = session.get(ProductAttribute, attribute_id)
    if variant is None or (product_id is not None and variant.product_id != product_id):
        raise NotFound(
            "Product attribute not found",
            {"attribute_id": attribute_id, "product_id": product_id},
        )
    return variant


def decrement_stock(
    session: Session,
    product_id: int,
    attribute_id: Optional[int],
    quantity: int,
    label: str = "",
) -> None:
    """
    Compare-and-swap stock decrement on the product, or on the variant when
    ``attribute_id`` is set. Never commits; raises InsufficientStock instead
    of letting stock go negative.
    """
    if attribute_id is not None:
        model, row_id = ProductAttribute, attribute_id
    else:
        model, row_id = Product, product_id

    result = session.exec(
        update(model)
        .where(model.id == row_id, model.stock >= quantity)
        .values(stock=model.stock - quantity, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientStock(
            f"Insufficient stock for \"{label or row_id}\"",
            {"product_id": product_id, "attribute_id": attribute_id, "required": quantity},
        )


def restock(
    session: Session,
    product_id: int,
    quantity: int,
    attribute_id: Optional[int] = None,
) -> Product | ProductAttribute:
    """Add ``quantity`` units to a product (or one of its variants)."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidInput("quantity must be a positive integer", {"field": "quantity"})

    with atomic(session):
        product = get_product(session, product_id)
        target = get_variant(session, attribute_id, product_id) if attribute_id else product
        session.exec(
            update(type(target))
            .where(type(target).id == target.id)
            .values(stock=type(target).stock + quantity, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    session.refresh(target)
    logger.info(
        f"Restocked product {product.id}"
        + (f" variant {attribute_id}" if attribute_id else "")
        + f" by {quantity} → {target.stock}"
    )
    return target


# ── Categories ────────────────────────────────────────────────────────────────


def list_categories(session: Session, is_active: Optional[bool] = None) -> list[Category]:
    stmt = select(Category)
    if is_active is not None:
        stmt = stmt.where(Category.is_active == is_active)
    return list(session.exec(stmt.order_by(col(Category.created_at).desc(), col(Category.id).desc())).all())


def create_category(session: Session, name: Any, description: Any = None) -> Category:
    name = _category_name(name)
    with atomic(session):
        if session.exec(select(Category).where(Category.name == name)).first():
            raise Conflict("Category with this name already exists", {"name": name})
        category = Category(name=name, description=_optional_text(description))
        session.add(category)
    session.refresh(category)
    logger.info(f"Category {category.id} '{category.name}' created")
    return category


def update_category(session: Session, category_id: int, **changes: Any) -> Category:
    with atomic(session):
        category = get_category(session, category_id)
        if "name" in changes and changes["name"] is not None:
            name = _category_name(changes["name"])
            clash = session.exec(
                select(Category).where(Category.name == name, Category.id != category_id)
            ).first()
            if clash:
                raise Conflict("Category with this name already exists", {"name": name})
            category.name = name
        if "description" in changes:
            category.description = _optional_text(changes["description"])
        if changes.get("is_active") is not None:
            category.is_active = bool(changes["is_active"])
        category.updated_at = utc_now()
        session.add(category)
    session.refresh(category)
    return category


def delete_category(session: Session, category_id: int) -> None:
    with atomic(session):
        category = get_category(session, category_id)
        subcategories = session.exec(
            select(func.count()).select_from(SubCategory).where(SubCategory.category_id == category_id)
        ).one()
        if subcategories:
            raise Conflict(
                "Cannot delete category with existing subcategories. Delete subcategories first.",
                {"category_id": category_id, "subcategories": subcategories},
            )
        products = session.exec(
            select(func.count()).select_from(Product).where(Product.category_id == category_id)
        ).one()
        if products:
            raise Conflict(
                "Cannot delete category with existing products. Delete products first.",
                {"category_id": category_id, "products": products},
            )
        session.delete(category)
    logger.info(f"Category {category_id} deleted")


# ── Subcategories ─────────────────────────────────────────────────────────────


def list_subcategories(
    session: Session,
    category_id: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> list[SubCategory]:
    stmt = select(SubCategory)
    if category_id is not None:
        stmt = stmt.where(SubCategory.category_id == category_id)
    if is_active is not None:
        stmt = stmt.where(SubCategory.is_active == is_active)
    return list(session.exec(stmt.order_by(col(SubCategory.created_at).desc(), col(SubCategory.id).desc())).all())


def _subcategory_name_taken(
    session: Session, category_id: int, name: str, exclude_id: Optional[int] = None
) -> bool:
    stmt = select(SubCategory).where(SubCategory.category_id == category_id, SubCategory.name == name)
    if exclude_id is not None:
        stmt = stmt.where(SubCategory.id != exclude_id)
    return session.exec(stmt).first() is not None


def create_subcategory(session: Session, category_id: int, name: Any, description: Any = None) -> SubCategory:
    name = _text(name, "name", 100)
    with atomic(session):
        get_category(session, category_id)
        if _subcategory_name_taken(session, category_id, name):
            raise Conflict(
                "SubCategory with this name already exists in this category",
                {"category_id": category_id, "name": name},
            )
        subcategory = SubCategory(category_id=category_id, name=name, description=_optional_text(description))
        session.add(subcategory)
    session.refresh(subcategory)
    logger.info(f"SubCategory {subcategory.id} '{name}' created in category {category_id}")
    return subcategory


def update_subcategory(session: Session, subcategory_id: int, **changes: Any) -> SubCategory:
    with atomic(session):
        subcategory = get_subcategory(session, subcategory_id)
        category_id = changes.get("category_id") or subcategory.category_id
        if category_id != subcategory.category_id:
            get_category(session, category_id)
            in_use = session.exec(
                select(func.count()).select_from(Product).where(Product.subcategory_id == subcategory_id)
            ).one()
            if in_use:
                raise Conflict(
                    "Cannot move a subcategory that still has products",
                    {"subcategory_id": subcategory_id, "products": in_use},
                )
        name = _text(changes["name"], "name", 100) if changes.get("name") is not None else subcategory.name
        if _subcategory_name_taken(session, category_id, name, exclude_id=subcategory_id):
            raise Conflict(
                "SubCategory with this name already exists in this category",
                {"category_id": category_id, "name": name},
            )
        subcategory.category_id = category_id
        subcategory.name = name
        if "description" in changes:
            subcategory.description = _optional_text(changes["description"])
        if changes.get("is_active") is not None:
            subcategory.is_active = bool(changes["is_active"])
        subcategory.updated_at = utc_now()
        session.add(subcategory)
    session.refresh(subcategory)
    return subcategory


def delete_subcategory(session: Session, subcategory_id: int) -> None:
    with atomic(session):
        subcategory = get_subcategory(session, subcategory_id)
        products = session.exec(
            select(func.count()).select_from(Product).where(Product.subcategory_id == subcategory_id)
        ).one()
        if products:
            raise Conflict(
                "Cannot delete subcategory with existing products. Delete products first.",
                {"subcategory_id": subcategory_id, "products": products},
            )
        session.delete(subcategory)
    logger.info(f"SubCategory {subcategory_id} deleted")


# ── Products ──────────────────────────────────────────────────────────────────


def list_products(
    session: Session,
    category_id: Optional[int] = None,
    subcategory_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> list[Product]:
    stmt = select(Product)
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    if subcategory_id is not None:
        stmt = stmt.where(Product.subcategory_id == subcategory_id)
    if is_active is not None:
        stmt = stmt.where(Product.is_active == is_active)
    if search:
        needle = search.lower()
        stmt = stmt.where(
            or_(
                func.lower(Product.name).contains(needle, autoescape=True),
                func.lower(Product.sku).contains(needle, autoescape=True),
            )
        )
    return list(session.exec(stmt.order_by(col(Product.created_at).desc(), col(Product.id).desc())).all())


def _check_placement(session: Session, category_id: int, subcategory_id: int) -> None:
    get_category(session, category_id)
    subcategory = get_subcategory(session, subcategory_id)
    if subcategory.category_id != category_id:
        raise InvalidInput(
            "SubCategory does not belong to the specified category",
            {"category_id": category_id, "subcategory_id": subcategory_id},
        )


def _sku_taken(session: Session, sku: str, exclude_product: Optional[int] = None) -> bool:
    stmt = select(Product).where(Product.sku == sku)
    if exclude_product is not None:
        stmt = stmt.where(Product.id != exclude_product)
    return session.exec(stmt).first() is not None


def create_product(
    session: Session,
    category_id: int,
    subcategory_id: int,
    name: Any,
    sku: Any,
    price: Any,
    description: Any = None,
    hsn: Any = None,
    gst_rate: Any = 0,
    actual_price: Any = None,
    stock: Any = 0,
    unit: Any = None,
) -> Product:
    product = Product(
        category_id=category_id,
        subcategory_id=subcategory_id,
        name=_text(name, "name", 200),
        sku=_text(sku, "sku", 50),
        price=_money(price, "price"),
        description=_optional_text(description),
        hsn=_hsn(hsn),
        gst_rate=_gst_rate(gst_rate),
        actual_price=_money(actual_price, "actual_price", required=False),
        stock=_stock(stock if stock is not None else 0),
        unit=_optional_text(unit) or "piece",
    )
    with atomic(session):
        _check_placement(session, category_id, subcategory_id)
        if _sku_taken(session, product.sku):
            raise Conflict("Product with this SKU already exists", {"sku": product.sku})
        session.add(product)
    session.refresh(product)
    logger.info(f"Product {product.id} '{product.name}' ({product.sku}) created")
    return product


def update_product(session: Session, product_id: int, **changes: Any) -> Product:
    with atomic(session):
        product = get_product(session, product_id)

        category_id = changes.get("category_id") or product.category_id
        subcategory_id = changes.get("subcategory_id") or product.subcategory_id
        if (category_id, subcategory_id) != (product.category_id, product.subcategory_id):
            _check_placement(session, category_id, subcategory_id)
            if category_id != product.category_id:
                # a cart holds lines of one category only
                moved = session.exec(select(CartLine).where(CartLine.product_id == product_id)).all()
                for line in moved:
                    session.delete(line)
                if moved:
                    logger.info(f"Product {product_id} changed category, {len(moved)} cart line(s) dropped")
            product.category_id = category_id
            product.subcategory_id = subcategory_id

        if changes.get("sku") is not None:
            sku = _text(changes["sku"], "sku", 50)
            if sku != product.sku and _sku_taken(session, sku, exclude_product=product_id):
                raise Conflict("Product with this SKU already exists", {"sku": sku})
            product.sku = sku
        if changes.get("name") is not None:
            product.name = _text(changes["name"], "name", 200)
        if "description" in changes:
            product.description = _optional_text(changes["description"])
        if "hsn" in changes:
            product.hsn = _hsn(changes["hsn"])
        if changes.get("gst_rate") is not None:
            product.gst_rate = _gst_rate(changes["gst_rate"])
        if changes.get("price") is not None:
            product.price = _money(changes["price"], "price")
        if "actual_price" in changes:
            product.actual_price = _money(changes["actual_price"], "actual_price", required=False)
        if changes.get("stock") is not None:
            product.stock = _stock(changes["stock"])
        if "unit" in changes:
            product.unit = _optional_text(changes["unit"]) or "piece"
        if changes.get("is_active") is not None:
            product.is_active = bool(changes["is_active"])

        product.updated_at = utc_now()
        session.add(product)
    session.refresh(product)
    logger.info(f"Product {product_id} updated: {sorted(changes)}")
    return product


def delete_product(session: Session, product_id: int) -> None:
    """Delete a product, its variants and any cart lines pointing at it."""
    with atomic(session):
        product = get_product(session, product_id)
        if session.exec(select(InvoiceLine.id).where(InvoiceLine.product_id == product_id)).first():
            raise Conflict(
                "Product has been billed and cannot be deleted. Deactivate it instead.",
                {"product_id": product_id},
            )
        for line in session.exec(select(CartLine).where(CartLine.product_id == product_id)).all():
            session.delete(line)
        for variant in session.exec(
            select(ProductAttribute).where(ProductAttribute.product_id == product_id)
        ).all():
            session.delete(variant)
        session.flush()
        session.delete(product)
    logger.info(f"Product {product_id} deleted")


# ── Variants ──────────────────────────────────────────────────────────────────


def list_variants(session: Session, product_id: int) -> list[ProductAttribute]:
    get_product(session, product_id)
    return list(
        session.exec(
            select(ProductAttribute)
            .where(ProductAttribute.product_id == product_id)
            .order_by(ProductAttribute.price, ProductAttribute.id)
        ).all()
    )


def _variant_sku_taken(session: Session, sku: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(ProductAttribute).where(ProductAttribute.sku == sku)
    if exclude_id is not None:
        stmt = stmt.where(ProductAttribute.id != exclude_id)
    return session.exec(stmt).first() is not None


def create_variant(
    session: Session,
    product_id: int,
    attribute_name: Any,
    attribute_value: Any,
    price: Any,
    sku: Any,
    actual_price: Any = None,
    stock: Any = 0,
) -> ProductAttribute:
    variant = ProductAttribute(
        product_id=product_id,
        attribute_name=_text(attribute_name, "attribute_name", 100),
        attribute_value=_text(attribute_value, "attribute_value", 50),
        price=_money(price, "price"),
        actual_price=_money(actual_price, "actual_price", required=False),
        stock=_stock(stock if stock is not None else 0),
        sku=_text(sku, "sku", 50),
    )
    with atomic(session):
        get_product(session, product_id)
        if _variant_sku_taken(session, variant.sku):
            raise Conflict("SKU already exists. Please use a unique SKU.", {"sku": variant.sku})
        session.add(variant)
    session.refresh(variant)
    logger.info(
        f"Variant {variant.id} '{variant.attribute_name}: {variant.attribute_value}' "
        f"added to product {product_id}"
    )
    return variant


def update_variant(session: Session, attribute_id: int, **changes: Any) -> ProductAttribute:
    with atomic(session):
        variant = get_variant(session, attribute_id)
        if changes.get("sku") is not None:
            sku = _text(changes["sku"], "sku", 50)
            if sku != variant.sku and _variant_sku_taken(session, sku, exclude_id=attribute_id):
                raise Conflict("SKU already exists. Please use a unique SKU.", {"sku": sku})
            variant.sku = sku
        if changes.get("attribute_name") is not None:
            variant.attribute_name = _text(changes["attribute_name"], "attribute_name", 100)
        if changes.get("attribute_value") is not None:
            variant.attribute_value = _text(changes["attribute_value"], "attribute_value", 50)
        if changes.get("price") is not None:
            variant.price = _money(changes["price"], "price")
        if "actual_price" in changes:
            variant.actual_price = _money(changes["actual_price"], "actual_price", required=False)
        if changes.get("stock") is not None:
            variant.stock = _stock(changes["stock"])
        if changes.get("is_active") is not None:
            variant.is_active = bool(changes["is_active"])
        variant.updated_at = utc_now()
        session.add(variant)
    session.refresh(variant)
    return variant


def delete_variant(session: Session, attribute_id: int) -> None:
    with atomic(session):
        variant = get_variant(session, attribute_id)
        if session.exec(select(InvoiceLine.id).where(InvoiceLine.attribute_id == attribute_id)).first():
            raise Conflict(
                "Variant has been billed and cannot be deleted. Deactivate it instead.",
                {"attribute_id": attribute_id},
            )
        for line in session.exec(select(CartLine).where(CartLine.attribute_id == attribute_id)).all():
            session.delete(line)
        session.flush()
        session.delete(variant)
    logger.info(f"Variant {attribute_id} deleted")
