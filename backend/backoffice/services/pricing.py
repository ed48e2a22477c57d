"""
Line and invoice money math.

Amounts are carried in full Decimal precision while aggregating and rounded
exactly once, to 2 places (half-up), when they are stored or shown.
GST is split into two equal halves: CGST and SGST.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO = Decimal("2")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() avoids binary float artefacts (0.1 → 0.1000000000000000055…)
    return Decimal(str(value))


def quantize(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineAmounts:
    subtotal: Decimal
    gst: Decimal
    cgst: Decimal
    sgst: Decimal
    total: Decimal

    def rounded(self) -> "LineAmounts":
        return LineAmounts(
            subtotal=quantize(self.subtotal),
            gst=quantize(self.gst),
            cgst=quantize(self.cgst),
            sgst=quantize(self.sgst),
            total=quantize(self.total),
        )


def line_amounts(
    unit_price: Number,
    quantity: int,
    gst_rate: Number,
    tax_enabled: bool = True,
) -> LineAmounts:
    """Full-precision amounts for one line. ``tax_enabled=False`` zeroes GST."""
    subtotal = to_decimal(unit_price) * quantity
    gst = subtotal * to_decimal(gst_rate) / HUNDRED if tax_enabled else ZERO
    half = gst / TWO
    return LineAmounts(
        subtotal=subtotal,
        gst=gst,
        cgst=half,
        sgst=half,
        total=subtotal + gst,
    )


def sum_amounts(lines: Iterable[LineAmounts]) -> LineAmounts:
    """Aggregate full-precision line amounts (round the result, not the inputs)."""
    subtotal = gst = cgst = sgst = total = ZERO
    for a in lines:
        subtotal += a.subtotal
        gst += a.gst
        cgst += a.cgst
        sgst += a.sgst
        total += a.total
    return LineAmounts(subtotal=subtotal, gst=gst, cgst=cgst, sgst=sgst, total=total)


def discount_percentage(price: Number, actual_price: Number | None) -> Decimal | None:
    """Discount of ``price`` against the list price, or None if there is none."""
    if actual_price is None:
        return None
    actual = to_decimal(actual_price)
    current = to_decimal(price)
    if actual <= current or actual <= ZERO:
        return None
    return quantize((actual - current) / actual * HUNDRED)
