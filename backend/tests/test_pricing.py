"""Unit tests for the money math."""
from decimal import Decimal

from backoffice.services.pricing import (
    discount_percentage,
    line_amounts,
    quantize,
    sum_amounts,
    to_decimal,
)


class TestQuantize:
    def test_half_up(self):
        assert quantize(Decimal("0.005")) == Decimal("0.01")
        assert quantize(Decimal("2.675")) == Decimal("2.68")
        assert quantize(Decimal("-0.005")) == Decimal("-0.01")

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert quantize(1.005) == Decimal("1.01")


class TestLineAmounts:
    def test_basic_line(self):
        a = line_amounts(Decimal("100.00"), 2, Decimal("18")).rounded()
        assert a.subtotal == Decimal("200.00")
        assert a.gst == Decimal("36.00")
        assert a.cgst == a.sgst == Decimal("18.00")
        assert a.total == Decimal("236.00")

    def test_tax_disabled(self):
        a = line_amounts(Decimal("99.99"), 3, Decimal("18"), tax_enabled=False).rounded()
        assert a.gst == a.cgst == a.sgst == Decimal("0.00")
        assert a.total == a.subtotal == Decimal("299.97")

    def test_full_precision_until_rounded(self):
        a = line_amounts(Decimal("0.33"), 1, Decimal("5"))
        assert a.gst == Decimal("0.0165")
        assert a.cgst == Decimal("0.00825")
        assert a.rounded().gst == Decimal("0.02")

    def test_aggregate_rounds_once(self):
        # Three lines of 0.0165 GST each: rounded per line that would be 0.06,
        # the exact sum 0.0495 rounds to 0.05.
        lines = [line_amounts(Decimal("0.33"), 1, Decimal("5")) for _ in range(3)]
        total = sum_amounts(lines).rounded()
        assert total.gst == Decimal("0.05")
        assert total.subtotal == Decimal("0.99")
        assert abs(total.total - (total.subtotal + total.gst)) <= Decimal("0.01")

    def test_empty_aggregate(self):
        total = sum_amounts([]).rounded()
        assert total.total == Decimal("0.00")


class TestDiscount:
    def test_discount(self):
        assert discount_percentage(Decimal("80"), Decimal("100")) == Decimal("20.00")

    def test_no_discount(self):
        assert discount_percentage(Decimal("100"), None) is None
        assert discount_percentage(Decimal("100"), Decimal("100")) is None
        assert discount_percentage(Decimal("120"), Decimal("100")) is None
