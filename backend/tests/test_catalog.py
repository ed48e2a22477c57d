"""Catalog store: management rules and the stock primitives billing relies on."""
from decimal import Decimal

import pytest

from backoffice.core.errors import Conflict, InsufficientStock, InvalidInput, NotFound
from backoffice.models.catalog import Product, ProductAttribute
from backoffice.services import cart, catalog


class TestCategories:
    def test_only_configured_names(self, session):
        with pytest.raises(InvalidInput):
            catalog.create_category(session, "hardware")

    def test_duplicate_name(self, session, store):
        with pytest.raises(Conflict):
            catalog.create_category(session, "laxmi_bookstore")

    def test_delete_blocked_by_children(self, session, store):
        with pytest.raises(Conflict) as exc:
            catalog.delete_category(session, store["books"])
        assert "subcategories" in exc.value.message

    def test_subcategory_name_unique_within_category(self, session, store):
        with pytest.raises(Conflict):
            catalog.create_subcategory(session, store["books"], "notebooks")
        # the same name is fine under another category
        other = catalog.create_subcategory(session, store["goods"], "notebooks")
        assert other.category_id == store["goods"]

    def test_delete_empty_subcategory_then_category(self, session):
        category = catalog.create_category(session, "laxmi_bookstore")
        sub = catalog.create_subcategory(session, category.id, "maps")
        catalog.delete_subcategory(session, sub.id)
        catalog.delete_category(session, category.id)
        with pytest.raises(NotFound):
            catalog.get_category(session, category.id)


class TestProducts:
    def test_subcategory_must_belong_to_category(self, session, store):
        with pytest.raises(InvalidInput):
            catalog.create_product(session, store["books"], store["oils"], "Ink", "INK-1", "20")

    def test_duplicate_sku(self, session, store):
        with pytest.raises(Conflict):
            catalog.create_product(session, store["books"], store["notebooks"], "Copy", "NB-001", "5")

    def test_hsn_format(self, session, store):
        with pytest.raises(InvalidInput):
            catalog.create_product(session, store["books"], store["notebooks"], "Copy", "C-1", "5", hsn="12")

    def test_search_and_filters(self, session, store):
        found = catalog.list_products(session, search="note")
        assert [p.sku for p in found] == ["NB-001"]
        assert {p.sku for p in catalog.list_products(session, category_id=store["goods"])} == {"OIL-001"}

    def test_update_and_deactivate(self, session, store):
        product = catalog.update_product(session, store["pen"], price=Decimal("12.50"), is_active=False)
        assert product.price == Decimal("12.50")
        assert product.is_active is False

    def test_delete_removes_cart_lines_and_variants(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["oil"], store["oil_500"], 1)
        catalog.delete_product(session, store["oil"])

        assert session.get(Product, store["oil"]) is None
        assert session.get(ProductAttribute, store["oil_500"]) is None
        assert cart.list_lines(session, admin_id).items == []

    def test_category_move_drops_cart_lines(self, session, store, admin_id, other_admin_id):
        cart.add_line(session, admin_id, store["notebook"], quantity=2)
        cart.add_line(session, other_admin_id, store["pen"])

        product = catalog.update_product(
            session, store["notebook"], category_id=store["goods"], subcategory_id=store["oils"]
        )

        assert product.category_id == store["goods"]
        assert cart.list_lines(session, admin_id).items == []
        assert len(cart.list_lines(session, other_admin_id).items) == 1

    def test_variants_ordered_by_price(self, session, store):
        variants = catalog.list_variants(session, store["oil"])
        assert [v.attribute_value for v in variants] == ["500ml", "1l"]

    def test_variant_must_belong_to_product(self, session, store):
        with pytest.raises(NotFound):
            catalog.get_variant(session, store["oil_500"], store["notebook"])


class TestStock:
    def test_decrement(self, session, store):
        catalog.decrement_stock(session, store["notebook"], None, 2)
        session.commit()
        assert session.get(Product, store["notebook"]).stock == 3

    def test_decrement_variant_leaves_product(self, session, store):
        catalog.decrement_stock(session, store["oil"], store["oil_500"], 4)
        session.commit()
        assert session.get(ProductAttribute, store["oil_500"]).stock == 0
        assert session.get(Product, store["oil"]).stock == 20

    def test_decrement_never_goes_negative(self, session, store):
        with pytest.raises(InsufficientStock):
            catalog.decrement_stock(session, store["notebook"], None, 6)
        session.rollback()
        assert session.get(Product, store["notebook"]).stock == 5

    def test_restock(self, session, store):
        catalog.restock(session, store["oil"], 3, attribute_id=store["oil_1l"])
        assert session.get(ProductAttribute, store["oil_1l"]).stock == 5

    def test_restock_rejects_non_positive(self, session, store):
        with pytest.raises(InvalidInput):
            catalog.restock(session, store["pen"], 0)
