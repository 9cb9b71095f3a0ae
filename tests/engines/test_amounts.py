"""
Tests for the per-line amount calculator.

Worked examples cover half-up rounding at the cent boundary; the property
tests cover the identities every line must satisfy.
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from billing_engines.amounts import ItemAmounts, calculate_item_amounts
from billing_engines.tracer import compute_input_fingerprint


class TestWorkedExamples:

    def test_single_line_fifteen_percent(self):
        result = calculate_item_amounts(
            quantity=Decimal("1"), unit_price=Decimal("100"), tax_rate=Decimal("0.15")
        )
        assert result == ItemAmounts(
            amount=Decimal("100.00"),
            tax_amount=Decimal("15.00"),
            rate_inclusive=Decimal("115.00"),
            line_total=Decimal("115.00"),
        )

    def test_fractional_quantity(self):
        result = calculate_item_amounts(
            quantity=Decimal("1.5"), unit_price=Decimal("200"), tax_rate=Decimal("0.15")
        )
        assert result.amount == Decimal("300.00")
        assert result.tax_amount == Decimal("45.00")
        assert result.line_total == Decimal("345.00")

    def test_half_cent_rounds_up(self):
        # 3 x 0.335 = 1.005 -> 1.01
        result = calculate_item_amounts(
            quantity=Decimal("3"), unit_price=Decimal("0.335"), tax_rate=Decimal("0")
        )
        assert result.amount == Decimal("1.01")
        assert result.tax_amount == Decimal("0.00")
        assert result.line_total == Decimal("1.01")

    def test_tax_computed_from_rounded_amount(self):
        # amount 33.33 (from 33.333), tax 33.33 * 0.15 = 4.9995 -> 5.00
        result = calculate_item_amounts(
            quantity=Decimal("1"), unit_price=Decimal("33.333"), tax_rate=Decimal("0.15")
        )
        assert result.amount == Decimal("33.33")
        assert result.tax_amount == Decimal("5.00")
        assert result.rate_inclusive == Decimal("38.33")
        assert result.line_total == Decimal("38.33")

    def test_zero_price_line(self):
        result = calculate_item_amounts(
            quantity=Decimal("2"), unit_price=Decimal("0"), tax_rate=Decimal("0.15")
        )
        assert result.line_total == Decimal("0.00")

    def test_full_tax_rate(self):
        result = calculate_item_amounts(
            quantity=Decimal("2"), unit_price=Decimal("10"), tax_rate=Decimal("1")
        )
        assert result.tax_amount == Decimal("20.00")
        assert result.rate_inclusive == Decimal("20.00")
        assert result.line_total == Decimal("40.00")

    def test_accepts_strings(self):
        result = calculate_item_amounts(quantity="2", unit_price="12.50", tax_rate="0.1")
        assert result.line_total == Decimal("27.50")

    def test_all_results_have_two_places(self):
        result = calculate_item_amounts(
            quantity=Decimal("7"), unit_price=Decimal("3"), tax_rate=Decimal("0.125")
        )
        for value in (result.amount, result.tax_amount, result.rate_inclusive, result.line_total):
            assert value.as_tuple().exponent == -2

    def test_keyword_only(self):
        with pytest.raises(TypeError):
            calculate_item_amounts(Decimal("1"), Decimal("1"), Decimal("0"))


class TestEngineTrace:

    def test_trace_logged(self, captured_logs):
        calculate_item_amounts(
            quantity=Decimal("1"), unit_price=Decimal("100"), tax_rate=Decimal("0.15")
        )
        traces = [r for r in captured_logs() if r["message"] == "BILLING_ENGINE_TRACE"]
        assert traces
        assert traces[0]["engine_name"] == "amounts"
        assert traces[0]["input_fingerprint"] == compute_input_fingerprint(
            ("quantity", "unit_price", "tax_rate"),
            {"quantity": Decimal("1"), "unit_price": Decimal("100"), "tax_rate": Decimal("0.15")},
        )

    def test_fingerprint_is_deterministic(self):
        fields = ("a", "b")
        assert compute_input_fingerprint(fields, {"a": 1, "b": {"y": 2, "x": 1}}) == (
            compute_input_fingerprint(fields, {"b": {"x": 1, "y": 2}, "a": 1})
        )
        assert len(compute_input_fingerprint(fields, {})) == 16

    def test_fingerprint_ignores_trailing_zeros(self):
        fields = ("quantity", "unit_price", "tax_rate")
        short = {"quantity": Decimal("1"), "unit_price": Decimal("100"), "tax_rate": Decimal("0.15")}
        padded = {"quantity": Decimal("1.0"), "unit_price": Decimal("100.00"), "tax_rate": Decimal("0.150")}
        assert compute_input_fingerprint(fields, short) == compute_input_fingerprint(fields, padded)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

quantities = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("9999"), places=2, allow_nan=False
)
prices = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("100000"), places=2, allow_nan=False
)
rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=4, allow_nan=False)


class TestProperties:

    @given(quantity=quantities, unit_price=prices, tax_rate=rates)
    @settings(max_examples=200)
    def test_line_total_is_amount_plus_tax(self, quantity, unit_price, tax_rate):
        result = calculate_item_amounts(
            quantity=quantity, unit_price=unit_price, tax_rate=tax_rate
        )
        assert result.line_total == result.amount + result.tax_amount

    @given(quantity=quantities, unit_price=prices, tax_rate=rates)
    @settings(max_examples=200)
    def test_non_negative(self, quantity, unit_price, tax_rate):
        result = calculate_item_amounts(
            quantity=quantity, unit_price=unit_price, tax_rate=tax_rate
        )
        assert result.amount >= 0
        assert result.tax_amount >= 0
        assert result.line_total >= result.amount

    @given(
        quantity=st.integers(min_value=1, max_value=9999),
        unit_price=prices,
        tax_rate=rates,
    )
    @settings(max_examples=200)
    def test_line_total_within_a_cent_of_exact(self, quantity, unit_price, tax_rate):
        # Whole quantities at cent prices give an exact amount, so only the
        # tax rounding can move the total.
        result = calculate_item_amounts(
            quantity=Decimal(quantity), unit_price=unit_price, tax_rate=tax_rate
        )
        exact = Decimal(quantity) * unit_price * (1 + tax_rate)
        assert abs(result.line_total - exact) <= Decimal("0.01")
