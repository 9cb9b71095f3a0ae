"""Tests for the invoice totals aggregator."""

from dataclasses import dataclass
from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from billing_engines.amounts import calculate_item_amounts
from billing_engines.totals import (
    InvoiceTotals,
    calculate_balance_due,
    calculate_invoice_totals,
)


@dataclass(frozen=True)
class Line:
    amount: Decimal
    tax_amount: Decimal


def test_empty_item_set_is_zero():
    totals = calculate_invoice_totals([])
    assert totals == InvoiceTotals.zero()
    assert totals.total_amount == Decimal("0.00")


def test_sums_amounts_and_taxes():
    totals = calculate_invoice_totals(
        [
            Line(Decimal("100.00"), Decimal("15.00")),
            Line(Decimal("300.00"), Decimal("45.00")),
        ]
    )
    assert totals.subtotal == Decimal("400.00")
    assert totals.tax_total == Decimal("60.00")
    assert totals.total_amount == Decimal("460.00")


def test_accepts_engine_results():
    lines = [
        calculate_item_amounts(quantity="1", unit_price="100", tax_rate="0.15"),
        calculate_item_amounts(quantity="1.5", unit_price="200", tax_rate="0.15"),
    ]
    assert calculate_invoice_totals(lines).total_amount == Decimal("460.00")


def test_accepts_generator():
    totals = calculate_invoice_totals(
        Line(Decimal("1.00"), Decimal("0.10")) for _ in range(3)
    )
    assert totals.total_amount == Decimal("3.30")


def test_balance_due():
    totals = InvoiceTotals(Decimal("100.00"), Decimal("15.00"), Decimal("115.00"))
    assert totals.balance_due(Decimal("60.00")) == Decimal("55.00")
    assert calculate_balance_due(Decimal("115.00"), Decimal("115.00")) == Decimal("0.00")


money = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2)


@given(st.lists(st.tuples(money, money), max_size=20))
def test_recompute_is_idempotent(pairs):
    lines = [Line(a, t) for a, t in pairs]
    first = calculate_invoice_totals(lines)
    second = calculate_invoice_totals(lines)
    assert first == second
    assert first.total_amount == first.subtotal + first.tax_total
