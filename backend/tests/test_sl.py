"""SL ledger: free-form cart and monthly invoices."""
from datetime import datetime
from decimal import Decimal

import pytest
from sqlmodel import select

from backoffice.core.errors import CategoryConflict, Conflict, EmptyCart, InvalidInput, NotFound
from backoffice.models.sl import SLCartLine, SLInvoice
from backoffice.services import sl

MORNING = datetime(2025, 1, 18, 6, 0)
BILL_TO = {"name": "Sharma Traders", "address": "5 Station Road, Pune", "mobile": "9822012345"}
SHIP_TO = {"name": "Sharma Godown", "address": "Plot 7, MIDC, Pune", "mobile": "9822054321"}


class TestSLCart:
    def test_taxed_category(self, session, admin_id):
        line = sl.add_sl_line(session, admin_id, "sl_swasthik", "Ghee 1kg", "550.00", 2, "12")
        assert line.subtotal == Decimal("1100.00")
        assert line.gst_amount == Decimal("132.00")
        assert line.total == Decimal("1232.00")

    def test_untaxed_category_forces_zero_rate(self, session, admin_id):
        line = sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80", 3, "18")
        assert line.gst_rate == Decimal("0")
        assert line.gst_amount == Decimal("0.00")
        assert line.total == Decimal("240.00")

    def test_lines_are_never_merged(self, session, admin_id):
        sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
        sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
        assert len(sl.list_sl_lines(session, admin_id).items) == 2

    def test_category_mixing(self, session, admin_id):
        sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
        with pytest.raises(CategoryConflict) as exc:
            sl.add_sl_line(session, admin_id, "sl_swasthik", "Ghee", "550")
        assert exc.value.details["current_category"] == "sl_laxmi"
        assert exc.value.details["attempted_category"] == "sl_swasthik"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"category": "retail", "product_name": "X", "product_price": "10"},
            {"category": None, "product_name": "X", "product_price": "10"},
            {"category": "sl_laxmi", "product_name": " ", "product_price": "10"},
            {"category": "sl_laxmi", "product_name": "X", "product_price": "0"},
            {"category": "sl_laxmi", "product_name": "X", "product_price": "10", "quantity": 0},
            {"category": "sl_swasthik", "product_name": "X", "product_price": "10", "gst_rate": "101"},
        ],
    )
    def test_validation(self, session, admin_id, kwargs):
        with pytest.raises(InvalidInput):
            sl.add_sl_line(session, admin_id, **kwargs)

    def test_update_recomputes(self, session, admin_id):
        line = sl.add_sl_line(session, admin_id, "sl_swasthik", "Ghee", "100", 1, "5")
        updated = sl.update_sl_line(session, admin_id, line.id, quantity=4, gst_rate="18")
        assert updated.subtotal == Decimal("400.00")
        assert updated.gst_amount == Decimal("72.00")
        assert updated.total == Decimal("472.00")

    def test_rate_ignored_for_untaxed(self, session, admin_id):
        line = sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
        updated = sl.update_sl_line(session, admin_id, line.id, gst_rate="18", product_price="90")
        assert updated.gst_rate == Decimal("0")
        assert updated.total == Decimal("90.00")

    def test_cart_totals(self, session, admin_id):
        sl.add_sl_line(session, admin_id, "sl_swasthik", "Ghee", "550", 2, "12")
        sl.add_sl_line(session, admin_id, "sl_swasthik", "Honey", "300", 1, "5")
        view = sl.list_sl_lines(session, admin_id)
        assert view.category == "sl_swasthik"
        assert view.subtotal == Decimal("1400.00")
        assert view.total_gst == Decimal("147.00")
        assert view.grand_total == Decimal("1547.00")

    def test_ownership(self, session, admin_id, other_admin_id):
        line = sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
        with pytest.raises(NotFound):
            sl.get_sl_line(session, other_admin_id, line.id)
        with pytest.raises(NotFound):
            sl.remove_sl_line(session, other_admin_id, line.id)
        sl.remove_sl_line(session, admin_id, line.id)
        assert sl.list_sl_lines(session, admin_id).items == []


class TestSLInvoice:
    def test_create_taxed(self, session, admin_id):
        sl.add_sl_line(session, admin_id, "sl_swasthik", "Ghee", "550", 2, "12")
        sl.add_sl_line(session, admin_id, "sl_swasthik", "Honey", "300", 1, "5")
        detail = sl.create_sl_invoice(session, admin_id, BILL_TO, SHIP_TO, "netbanking", now=MORNING)
        invoice = detail.invoice

        assert invoice.invoice_number == "SL2501-0001"
        assert invoice.category == "sl_swasthik"
        assert invoice.subtotal == Decimal("1400.00")
        assert invoice.total_gst == Decimal("147.00")
        assert invoice.cgst == invoice.sgst == Decimal("73.50")
        assert invoice.grand_total == Decimal("1547.00")
        assert invoice.ship_to_name == "Sharma Godown"
        assert [l.product_name for l in detail.lines] == ["Ghee", "Honey"]
        assert session.exec(select(SLCartLine)).all() == []

    def test_create_untaxed(self, session, admin_id):
        sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80", 3)
        invoice = sl.create_sl_invoice(session, admin_id, BILL_TO, SHIP_TO, now=MORNING).invoice
        assert invoice.total_gst == Decimal("0.00")
        assert invoice.grand_total == Decimal("240.00")

    def test_numbering_is_monthly(self, session, admin_id):
        numbers = []
        for day in (3, 18, 31):
            sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
            detail = sl.create_sl_invoice(session, admin_id, BILL_TO, SHIP_TO, now=datetime(2025, 1, day, 6, 0))
            numbers.append(detail.invoice.invoice_number)
        sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
        numbers.append(
            sl.create_sl_invoice(session, admin_id, BILL_TO, SHIP_TO, now=datetime(2025, 2, 1, 6, 0)).invoice.invoice_number
        )
        assert numbers == ["SL2501-0001", "SL2501-0002", "SL2501-0003", "SL2502-0001"]

    def test_requires_both_parties(self, session, admin_id):
        sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
        with pytest.raises(InvalidInput) as exc:
            sl.create_sl_invoice(session, admin_id, BILL_TO, {**SHIP_TO, "address": ""})
        assert "Ship To" in exc.value.message
        with pytest.raises(InvalidInput):
            sl.create_sl_invoice(session, admin_id, None, SHIP_TO)
        assert len(sl.list_sl_lines(session, admin_id).items) == 1

    def test_empty_cart(self, session, admin_id):
        with pytest.raises(EmptyCart):
            sl.create_sl_invoice(session, admin_id, BILL_TO, SHIP_TO)
        assert session.exec(select(SLInvoice)).all() == []

    def test_list_disable_enable(self, session, admin_id):
        sl.add_sl_line(session, admin_id, "sl_laxmi", "Register", "80")
        first = sl.create_sl_invoice(session, admin_id, BILL_TO, SHIP_TO).invoice.id
        sl.add_sl_line(session, admin_id, "sl_swasthik", "Ghee", "100", 1, "18")
        sl.create_sl_invoice(session, admin_id, {**BILL_TO, "name": "Patil Stores"}, SHIP_TO, "upi")

        assert sl.list_sl_invoices(session).summary.total_amount == Decimal("198.00")
        assert sl.list_sl_invoices(session, category="sl_swasthik").summary.count == 1
        assert sl.list_sl_invoices(session, search="patil").summary.total_amount == Decimal("118.00")

        sl.disable_sl_invoice(session, first)
        with pytest.raises(Conflict):
            sl.disable_sl_invoice(session, first)
        assert sl.list_sl_invoices(session, status="active").summary.count == 1
        assert sl.enable_sl_invoice(session, first).invoice.status == "active"
