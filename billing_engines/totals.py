"""
Invoice Totals Aggregator - invoice-level totals from line amounts.

Pure functions.  The invoice service feeds in the non-deleted items of one
invoice and writes the result back onto the invoice row.

    subtotal     = round(sum(item.amount))
    tax_total    = round(sum(item.tax_amount))
    total_amount = round(subtotal + tax_total)
    balance_due  = round(total_amount - total_paid)

An empty item set yields zeros.  Recomputing from an unchanged item set
yields the same totals.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from billing_kernel.domain.money import ZERO, round_money, to_decimal


class LineAmounts(Protocol):
    """Anything that exposes a line's amount and tax_amount."""

    amount: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    """Invoice-level totals before payments."""

    subtotal: Decimal
    tax_total: Decimal
    total_amount: Decimal

    @classmethod
    def zero(cls) -> InvoiceTotals:
        return cls(subtotal=ZERO, tax_total=ZERO, total_amount=ZERO)

    def balance_due(self, total_paid: Decimal) -> Decimal:
        return calculate_balance_due(self.total_amount, total_paid)


def calculate_invoice_totals(items: Iterable[LineAmounts]) -> InvoiceTotals:
    """Sum line amounts and taxes; each total rounded half-up to 2 dp."""
    amount_sum = Decimal("0")
    tax_sum = Decimal("0")
    count = 0
    for item in items:
        amount_sum += to_decimal(item.amount)
        tax_sum += to_decimal(item.tax_amount)
        count += 1

    if count == 0:
        return InvoiceTotals.zero()

    subtotal = round_money(amount_sum)
    tax_total = round_money(tax_sum)
    return InvoiceTotals(
        subtotal=subtotal,
        tax_total=tax_total,
        total_amount=round_money(subtotal + tax_total),
    )


def calculate_balance_due(total_amount: Decimal, total_paid: Decimal) -> Decimal:
    return round_money(to_decimal(total_amount) - to_decimal(total_paid))
