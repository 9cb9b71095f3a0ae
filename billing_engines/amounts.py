"""
Amount Calculator - per-line tax and amount computation.

Pure function, no I/O.  Input validation (quantity > 0, price >= 0,
rate in [0, 1]) happens upstream in the item service; this engine only
does arithmetic.

Each derived field is rounded half-up to 2 dp on its own:

    amount         = round(quantity * unit_price)
    tax_amount     = round(amount * tax_rate)
    rate_inclusive = round(unit_price * (1 + tax_rate))
    line_total     = round(amount + tax_amount)

``tax_amount`` is computed from the already-rounded ``amount``, so
``line_total == amount + tax_amount`` exactly.  ``rate_inclusive`` is a
display figure and need not equal ``line_total / quantity``.

Usage:
    from decimal import Decimal
    from billing_engines.amounts import calculate_item_amounts

    result = calculate_item_amounts(
        quantity=Decimal("1"),
        unit_price=Decimal("100"),
        tax_rate=Decimal("0.15"),
    )
    result.line_total  # Decimal("115.00")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from billing_engines.tracer import traced_engine
from billing_kernel.domain.money import round_money, to_decimal


@dataclass(frozen=True)
class ItemAmounts:
    """Derived monetary fields of one invoice line, all at 2 dp."""

    amount: Decimal
    tax_amount: Decimal
    rate_inclusive: Decimal
    line_total: Decimal


@traced_engine("amounts", "1.0", fingerprint_fields=("quantity", "unit_price", "tax_rate"))
def calculate_item_amounts(
    *,
    quantity: Decimal | int | str,
    unit_price: Decimal | int | str,
    tax_rate: Decimal | int | str,
) -> ItemAmounts:
    """Compute amount, tax, tax-inclusive unit rate and line total."""
    q = to_decimal(quantity)
    p = to_decimal(unit_price)
    t = to_decimal(tax_rate)

    amount = round_money(q * p)
    tax_amount = round_money(amount * t)
    rate_inclusive = round_money(p * (Decimal("1") + t))
    line_total = round_money(amount + tax_amount)

    return ItemAmounts(
        amount=amount,
        tax_amount=tax_amount,
        rate_inclusive=rate_inclusive,
        line_total=line_total,
    )
