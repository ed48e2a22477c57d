"""
Billing engine: invoice creation, numbering, atomicity and concurrency.

Concurrency tests run real threads, each with its own Session, against the
temp SQLite file; the engine opens every transaction with BEGIN IMMEDIATE,
so they exercise the same serialisation the service relies on.
"""
import csv
import io
import threading
from datetime import datetime
from decimal import Decimal

import pytest
from sqlmodel import Session, select

from backoffice.core.database import engine
from backoffice.core.errors import (
    BackofficeError,
    Conflict,
    EmptyCart,
    InsufficientStock,
    InvalidInput,
    NotFound,
    Unavailable,
)
from backoffice.models.billing import Invoice, InvoiceLine, InvoiceSequence
from backoffice.models.cart import CartLine
from backoffice.models.catalog import Product, ProductAttribute
from backoffice.services import billing, cart, catalog
from backoffice.services.billing import Customer

from conftest import make_admin

MORNING = datetime(2025, 1, 18, 6, 0)
WALK_IN = Customer(name="Ravi Kumar", contact="9876543210", address="12 MG Road")


def _stock(session, product_id):
    session.expire_all()
    return session.get(Product, product_id).stock


class TestCreateInvoice:
    def test_scenario(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["notebook"], quantity=2)
        detail = billing.create_invoice(session, admin_id, WALK_IN, "upi", now=MORNING)
        invoice = detail.invoice

        assert invoice.invoice_number == "INV250118-0001"
        assert invoice.subtotal == Decimal("200.00")
        assert invoice.total_gst == Decimal("36.00")
        assert invoice.cgst == Decimal("18.00")
        assert invoice.sgst == Decimal("18.00")
        assert invoice.grand_total == Decimal("236.00")
        assert invoice.payment_mode == "upi"
        assert invoice.status == "active"
        assert invoice.created_by == admin_id

        assert _stock(session, store["notebook"]) == 3
        assert cart.list_lines(session, admin_id).items == []

        [line] = detail.lines
        assert (line.product_name, line.product_sku, line.quantity) == ("Notebook", "NB-001", 2)
        assert line.unit_price == Decimal("100.00")
        assert line.total == Decimal("236.00")

    def test_totals_are_consistent(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["oil"], quantity=3)
        cart.add_line(session, admin_id, store["oil"], store["oil_500"], quantity=1)
        invoice = billing.create_invoice(session, admin_id, WALK_IN).invoice

        assert abs(invoice.grand_total - (invoice.subtotal + invoice.total_gst)) <= Decimal("0.01")
        assert abs(invoice.total_gst - (invoice.cgst + invoice.sgst)) <= Decimal("0.01")
        assert invoice.cgst == invoice.sgst
        assert invoice.subtotal == Decimal("890.00")

    def test_variant_snapshot_and_stock(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["oil"], store["oil_500"], quantity=3)
        detail = billing.create_invoice(session, admin_id, WALK_IN)

        [line] = detail.lines
        assert line.attribute_name == "Volume"
        assert line.attribute_value == "500ml"
        assert line.product_sku == "OIL-500"
        assert line.unit_price == Decimal("140.00")
        assert line.gst_rate == Decimal("12.00")
        assert line.unit == "bottle"

        session.expire_all()
        assert session.get(ProductAttribute, store["oil_500"]).stock == 1
        assert session.get(Product, store["oil"]).stock == 20

    def test_lines_survive_catalog_edits(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["pen"], quantity=1)
        invoice_id = billing.create_invoice(session, admin_id, WALK_IN).invoice.id
        catalog.update_product(session, store["pen"], name="Gel Pen", price=Decimal("15.00"))

        [line] = billing.get_invoice(session, invoice_id).lines
        assert line.product_name == "Pen"
        assert line.unit_price == Decimal("10.00")

    def test_numbers_increase_within_the_day(self, session, store, admin_id):
        numbers = []
        for _ in range(3):
            cart.add_line(session, admin_id, store["pen"])
            numbers.append(billing.create_invoice(session, admin_id, WALK_IN, now=MORNING).invoice.invoice_number)
        assert numbers == ["INV250118-0001", "INV250118-0002", "INV250118-0003"]


class TestRejections:
    def test_empty_cart(self, session, store, admin_id):
        with pytest.raises(EmptyCart):
            billing.create_invoice(session, admin_id, WALK_IN)

    @pytest.mark.parametrize(
        "customer",
        [
            Customer(name="", contact="9876543210"),
            Customer(name="Ravi", contact=None),
            Customer(name="Ravi", contact="12ab"),
        ],
    )
    def test_customer_details(self, session, store, admin_id, customer):
        cart.add_line(session, admin_id, store["pen"])
        with pytest.raises(InvalidInput):
            billing.create_invoice(session, admin_id, customer)
        assert len(cart.list_lines(session, admin_id).items) == 1

    def test_payment_mode(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["pen"])
        with pytest.raises(InvalidInput) as exc:
            billing.create_invoice(session, admin_id, WALK_IN, "cheque")
        assert "upi" in exc.value.details["allowed"]

    def test_product_switched_off_after_adding(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["pen"])
        catalog.update_product(session, store["pen"], is_active=False)
        with pytest.raises(Unavailable) as exc:
            billing.create_invoice(session, admin_id, WALK_IN)
        assert "Pen" in exc.value.message

    def test_stock_fell_after_adding(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["notebook"], quantity=2)
        cart.add_line(session, admin_id, store["pen"], quantity=3)
        catalog.update_product(session, store["pen"], stock=1)

        with pytest.raises(InsufficientStock) as exc:
            billing.create_invoice(session, admin_id, WALK_IN)
        assert "Pen" in exc.value.message

        assert _stock(session, store["notebook"]) == 5
        assert len(cart.list_lines(session, admin_id).items) == 2
        assert session.exec(select(Invoice)).all() == []


class TestAtomicity:
    def test_failure_at_second_line_rolls_everything_back(self, session, store, admin_id, monkeypatch):
        cart.add_line(session, admin_id, store["notebook"], quantity=2)
        cart.add_line(session, admin_id, store["pen"], quantity=3)

        real_decrement = catalog.decrement_stock
        calls = []

        def failing_decrement(s, product_id, attribute_id, quantity, label=""):
            calls.append(product_id)
            if len(calls) == 2:
                raise InsufficientStock(f'Insufficient stock for "{label}"')
            return real_decrement(s, product_id, attribute_id, quantity, label)

        monkeypatch.setattr(catalog, "decrement_stock", failing_decrement)
        with pytest.raises(InsufficientStock):
            billing.create_invoice(session, admin_id, WALK_IN, now=MORNING)

        assert calls == [store["notebook"], store["pen"]]
        assert _stock(session, store["notebook"]) == 5
        assert _stock(session, store["pen"]) == 50
        assert session.exec(select(Invoice)).all() == []
        assert session.exec(select(InvoiceLine)).all() == []
        assert session.exec(select(InvoiceSequence)).all() == []
        assert len(session.exec(select(CartLine)).all()) == 2

        # No number was consumed by the failed attempt
        monkeypatch.setattr(catalog, "decrement_stock", real_decrement)
        invoice = billing.create_invoice(session, admin_id, WALK_IN, now=MORNING).invoice
        assert invoice.invoice_number == "INV250118-0001"


class TestConcurrency:
    def _run(self, actors, work):
        barrier = threading.Barrier(len(actors))
        results = []
        lock = threading.Lock()

        def worker(actor):
            with Session(engine) as s:
                barrier.wait()
                try:
                    outcome = work(s, actor)
                except BackofficeError as exc:
                    outcome = exc.kind
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker, args=(a,)) for a in actors]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=120)
        return results

    def test_low_stock_is_never_oversold(self, session, store):
        actors = [make_admin(session, f"cashier{i}", f"token-{i}") for i in range(5)]
        for actor in actors:
            cart.add_line(session, actor, store["oil"], store["oil_1l"], quantity=1)
        session.close()

        results = self._run(
            actors,
            lambda s, actor: billing.create_invoice(s, actor, WALK_IN, now=MORNING).invoice.invoice_number,
        )

        numbers = sorted(r for r in results if r.startswith("INV"))
        assert numbers == ["INV250118-0001", "INV250118-0002"]
        assert results.count("InsufficientStock") == 3
        session.expire_all()
        assert session.get(ProductAttribute, store["oil_1l"]).stock == 0

    def test_numbers_are_unique_across_admins(self, session, store):
        actors = [make_admin(session, f"cashier{i}", f"token-{i}") for i in range(6)]
        for actor in actors:
            cart.add_line(session, actor, store["pen"], quantity=2)
        session.close()

        results = self._run(
            actors,
            lambda s, actor: billing.create_invoice(s, actor, WALK_IN, now=MORNING).invoice.invoice_number,
        )

        assert sorted(results) == [f"INV250118-{n:04d}" for n in range(1, 7)]
        assert _stock(session, store["pen"]) == 50 - 12

    def test_same_admin_double_submit(self, session, store, admin_id):
        cart.add_line(session, admin_id, store["notebook"], quantity=2)
        session.close()

        results = self._run(
            [admin_id, admin_id],
            lambda s, actor: billing.create_invoice(s, actor, WALK_IN).invoice.invoice_number,
        )

        assert results.count("EmptyCart") == 1
        assert len(session.exec(select(Invoice)).all()) == 1
        assert _stock(session, store["notebook"]) == 3


class TestQueries:
    @pytest.fixture
    def invoices(self, session, store, admin_id):
        bills = [
            ("Ravi Kumar", "9876543210", "cash", store["notebook"], 1),
            ("Anita Shah", "9123456780", "upi", store["pen"], 4),
            ("Ravi Kumar", "9876543210", "card", store["pen"], 2),
        ]
        ids = []
        for name, contact, mode, product, qty in bills:
            cart.add_line(session, admin_id, product, quantity=qty)
            ids.append(billing.create_invoice(session, admin_id, Customer(name, contact), mode).invoice.id)
        return ids

    def test_get_missing(self, session):
        with pytest.raises(NotFound):
            billing.get_invoice(session, 42)

    def test_list_and_summary(self, session, invoices):
        listing = billing.list_invoices(session)
        assert listing.summary.count == 3
        # 118.00 + 42.00 + 21.00
        assert listing.summary.total_amount == Decimal("181.00")
        assert listing.summary.total_gst == Decimal("21.00")
        assert listing.summary.total_cgst == listing.summary.total_sgst == Decimal("10.50")

    def test_summary_follows_filters(self, session, invoices):
        listing = billing.list_invoices(session, search="ravi")
        assert [i.payment_mode for i in listing.invoices] == ["card", "cash"]
        assert listing.summary.count == 2
        assert listing.summary.total_amount == Decimal("139.00")

        upi = billing.list_invoices(session, payment_mode="upi")
        assert upi.summary.total_amount == Decimal("42.00")

    def test_sorting(self, session, invoices):
        ascending = billing.list_invoices(session, sort_by="grand_total", sort_order="asc")
        assert [i.grand_total for i in ascending.invoices] == [Decimal("21.00"), Decimal("42.00"), Decimal("118.00")]
        with pytest.raises(InvalidInput):
            billing.list_invoices(session, sort_by="customer_contact; drop table invoices")

    def test_disable_and_enable(self, session, invoices):
        first = invoices[0]
        assert billing.disable_invoice(session, first).invoice.status == "disabled"
        with pytest.raises(Conflict) as exc:
            billing.disable_invoice(session, first)
        assert exc.value.message == "Bill is already disabled"

        assert billing.list_invoices(session, status="disabled").summary.count == 1
        assert billing.list_invoices(session, status="active").summary.count == 2

        assert billing.enable_invoice(session, first).invoice.status == "active"
        with pytest.raises(Conflict):
            billing.enable_invoice(session, first)

    def test_csv_export(self, session, invoices):
        rows = list(csv.reader(io.StringIO(billing.export_invoices_csv(session, payment_mode="cash"))))
        assert rows[0] == billing.CSV_COLUMNS
        assert len(rows) == 2
        assert rows[1][2] == "Ravi Kumar"
        assert rows[1][-2] == "118.00"
